"""Supported destination cities and departure airports."""
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class City(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: str
    label: str


class Airport(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    value: str
    label: str
    city_code: Optional[str] = None


CITIES: List[City] = [
    City(value="PAR", label="Paris, France"),
    City(value="LON", label="London, UK"),
    City(value="ROM", label="Rome, Italy"),
    City(value="BCN", label="Barcelona, Spain"),
    City(value="AMS", label="Amsterdam, Netherlands"),
    City(value="BER", label="Berlin, Germany"),
    City(value="PRG", label="Prague, Czech Republic"),
    City(value="VIE", label="Vienna, Austria"),
    City(value="LIS", label="Lisbon, Portugal"),
    City(value="MAD", label="Madrid, Spain"),
    City(value="ATH", label="Athens, Greece"),
    City(value="DXB", label="Dubai, UAE"),
    City(value="TYO", label="Tokyo, Japan"),
    City(value="SIN", label="Singapore"),
    City(value="SYD", label="Sydney, Australia"),
    City(value="NYC", label="New York City, USA"),
    City(value="SFO", label="San Francisco, USA"),
    City(value="MIA", label="Miami, USA"),
    City(value="CUN", label="Cancun, Mexico"),
    City(value="YVR", label="Vancouver, Canada"),
]

AIRPORTS: List[Airport] = [
    # North America
    Airport(value="JFK", label="New York (JFK)", city_code="NYC"),
    Airport(value="LAX", label="Los Angeles (LAX)"),
    Airport(value="ORD", label="Chicago (ORD)"),
    Airport(value="SFO", label="San Francisco (SFO)"),
    Airport(value="MIA", label="Miami (MIA)"),
    Airport(value="DFW", label="Dallas/Fort Worth (DFW)"),
    Airport(value="SEA", label="Seattle (SEA)"),
    Airport(value="BOS", label="Boston (BOS)"),
    Airport(value="LAS", label="Las Vegas (LAS)"),
    Airport(value="ATL", label="Atlanta (ATL)"),
    Airport(value="DEN", label="Denver (DEN)"),
    Airport(value="IAH", label="Houston (IAH)"),
    Airport(value="PHX", label="Phoenix (PHX)"),
    Airport(value="MCO", label="Orlando (MCO)"),
    Airport(value="EWR", label="Newark (EWR)", city_code="NYC"),
    Airport(value="YVR", label="Vancouver (YVR)"),
    # Europe
    Airport(value="LHR", label="London Heathrow (LHR)", city_code="LON"),
    Airport(value="LGW", label="London Gatwick (LGW)", city_code="LON"),
    Airport(value="CDG", label="Paris Charles de Gaulle (CDG)", city_code="PAR"),
    Airport(value="ORY", label="Paris Orly (ORY)", city_code="PAR"),
    Airport(value="FCO", label="Rome Fiumicino (FCO)", city_code="ROM"),
    Airport(value="BCN", label="Barcelona (BCN)"),
    Airport(value="AMS", label="Amsterdam Schiphol (AMS)"),
    Airport(value="BER", label="Berlin Brandenburg (BER)"),
    Airport(value="PRG", label="Prague Vaclav Havel (PRG)"),
    Airport(value="VIE", label="Vienna International (VIE)"),
    Airport(value="LIS", label="Lisbon Portela (LIS)"),
    Airport(value="MAD", label="Madrid Barajas (MAD)"),
    Airport(value="ATH", label="Athens International (ATH)"),
    # Middle East & Asia
    Airport(value="DXB", label="Dubai International (DXB)"),
    Airport(value="HND", label="Tokyo Haneda (HND)", city_code="TYO"),
    Airport(value="NRT", label="Tokyo Narita (NRT)", city_code="TYO"),
    Airport(value="SIN", label="Singapore Changi (SIN)"),
    # Australia
    Airport(value="SYD", label="Sydney Kingsford Smith (SYD)"),
]

_CITIES_BY_CODE: Dict[str, City] = {city.value: city for city in CITIES}
_AIRPORTS_BY_CODE: Dict[str, Airport] = {airport.value: airport for airport in AIRPORTS}


def is_known_city(code: str) -> bool:
    return code.upper() in _CITIES_BY_CODE


def is_known_airport(code: str) -> bool:
    return code.upper() in _AIRPORTS_BY_CODE


def city_label(code: str) -> Optional[str]:
    city = _CITIES_BY_CODE.get(code.upper())
    return city.label if city else None


def primary_airport_for_city(code: str) -> str:
    """Resolve a city code to the airport used for flight searches.

    The first airport serving the city wins (``PAR`` -> ``CDG``); otherwise an
    airport with the same code, otherwise the code itself.
    """

    code = code.upper()
    for airport in AIRPORTS:
        if airport.city_code == code:
            return airport.value
    return code
