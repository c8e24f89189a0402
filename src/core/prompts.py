json_formatting_rules = """CRITICAL JSON FORMATTING RULES:
1. Return ONLY a valid JSON object
2. Do NOT include any text before or after the JSON
3. Do NOT use markdown formatting or code blocks
4. Use ONLY double quotes for strings and property names
5. Do NOT use single quotes anywhere
6. Do NOT include any comments
7. Do NOT include any trailing commas
8. Ensure all strings are properly escaped
9. Ensure all arrays and objects are properly closed
10. All numbers must be valid JSON numbers (no ranges like "35-40", use the average value instead)
11. All dates must be valid ISO strings
12. All URLs must be valid and properly escaped
13. For price ranges, use the average value (e.g., for "35-40", use 37.5)"""

budget_system_prompt = (
    """You are an AI travel budget expert. Your role is to:
1. Provide accurate cost estimates for travel expenses
2. Consider seasonality, location, and number of travelers
3. Always return responses in valid JSON format
4. Include min and max ranges for each price tier
5. Provide brief descriptions explaining the estimates
6. Consider local market conditions and currency
7. Base estimates on real-world data and current market rates

"""
    + json_formatting_rules
)

activity_system_prompt = (
    """You are a travel expert who finds current activities, tours and attractions with real prices.
Always prefer official or well-known booking sources and never invent booking links.

"""
    + json_formatting_rules
)

_tier_fields = """"min": number (lowest price in this tier),
      "max": number (highest price in this tier),
      "average": number (average price in this tier),
      "confidence": number (between 0 and 1),
      "source": "string (data source)","""

trip_details = """TRIP DETAILS:
- Departure: {departure}
- Destination: {destination}
- Dates: {start_date} to {end_date} ({days} days)
- Travelers: {travelers}
- Currency: {currency}
{budget_line}{style_line}{interests_line}"""

flights_prompt = """Estimate current round-trip flight prices from {departure} to {destination}.

{trip_details}

Use this exact JSON structure:
{{
  "flights": {{
    "budget": {{
      """ + _tier_fields + """
      "references": [
        {{
          "airline": "string (airline name)",
          "route": "string (e.g., 'LAX to CDG')",
          "price": number (total price for all travelers),
          "outbound": "string (ISO date)",
          "inbound": "string (ISO date)",
          "duration": "string (e.g., '10 hours')",
          "layovers": number (0 for direct flights),
          "flightNumber": "string (e.g., 'AA123')",
          "cabinClass": "ECONOMY | PREMIUM_ECONOMY | BUSINESS | FIRST",
          "referenceUrl": "string (booking URL)"
        }}
      ]
    }},
    "medium": {{ same structure as budget }},
    "premium": {{ same structure as budget }}
  }}
}}

Budget flights cost up to {flight_budget_max} {currency}, medium flights up to {flight_medium_max} {currency};
business and first class fares always belong to premium. Include at least 2 references per tier."""

hotels_prompt = """Find accommodation options in {destination} for {travelers} travelers.

{trip_details}

Prices are per night for the whole party.

Use this exact JSON structure:
{{
  "hotels": {{
    "budget": {{
      """ + _tier_fields + """
      "references": [
        {{
          "name": "string",
          "location": "string",
          "price": number (per night),
          "type": "string (hotel, hostel, apartment...)",
          "amenities": ["string"],
          "rating": number,
          "reviewCount": number,
          "referenceUrl": "string",
          "policies": {{ "checkIn": "string", "checkOut": "string" }}
        }}
      ]
    }},
    "medium": {{ same structure as budget }},
    "premium": {{ same structure as budget }}
  }}
}}

Budget stays cost up to {hotel_budget_max} {currency} per night, medium stays up to {hotel_medium_max} {currency}.
Include at least 2 references per tier."""

local_transportation_prompt = """Analyze local transportation options in {destination} for {travelers} travelers.

{trip_details}

Include public transportation (buses, trains, metro), taxis and ride-sharing, car rentals and airport transfers.
Prices are the total for the whole stay.

Use this exact JSON structure:
{{
  "localTransportation": {{
    "budget": {{
      """ + _tier_fields + """
      "references": [
        {{
          "name": "string",
          "description": "string",
          "price": number,
          "unit": "string (per ride, per day, pass...)",
          "referenceUrl": "string"
        }}
      ]
    }},
    "medium": {{ same structure }},
    "premium": {{ same structure }}
  }}
}}"""

food_prompt = """Estimate food costs in {destination} for {travelers} travelers.

{trip_details}

Include local restaurants, cafes and street food, grocery stores and fine dining.
Prices are per day for the whole party.

Use this exact JSON structure:
{{
  "food": {{
    "budget": {{
      """ + _tier_fields + """
      "references": [
        {{
          "name": "string",
          "description": "string",
          "price": number,
          "mealType": "string",
          "referenceUrl": "string"
        }}
      ]
    }},
    "medium": {{ same structure }},
    "premium": {{ same structure }}
  }}
}}"""

activities_prompt = """Research tourist activities and attractions in {destination} for {travelers} travelers.

{trip_details}

Include tourist attractions, guided tours, cultural experiences, entertainment and adventure activities.
Prices are per person.

Use this exact JSON structure:
{{
  "activities": {{
    "budget": {{
      """ + _tier_fields + """
      "references": [
        {{
          "name": "string",
          "description": "string",
          "price": number,
          "duration": "string (e.g., '2 hours')",
          "category": "string",
          "rating": number (0-5),
          "numberOfReviews": number,
          "referenceUrl": "string"
        }}
      ]
    }},
    "medium": {{ same structure }},
    "premium": {{ same structure }}
  }}
}}

Budget activities cost up to {activity_budget_max} {currency} per person, medium activities up to {activity_medium_max} {currency}."""

CATEGORY_PROMPTS = {
    "flights": flights_prompt,
    "hotels": hotels_prompt,
    "localTransportation": local_transportation_prompt,
    "food": food_prompt,
    "activities": activities_prompt,
}

activity_list_prompt = """Suggest activities for a {days}-day trip to {destination}.

TRAVELER PREFERENCES:
- Travel style: {travel_style}
- Daily activity budget: {daily_budget}
- Currency: {currency}
- Interests: {interests}

For EACH time slot (morning, afternoon, evening) suggest several options across price ranges:
- Budget activities (up to {activity_budget_max} {currency} per person)
- Medium activities (up to {activity_medium_max} {currency} per person)
- Premium activities (above {activity_medium_max} {currency} per person)

Return a JSON object with an "activities" array. Each activity must have:
{{
  "name": "string",
  "description": "string",
  "price": number (per person),
  "currency": "{currency}",
  "duration": number (hours),
  "category": "Cultural & Historical | Nature & Adventure | Food & Entertainment | Lifestyle & Local",
  "location": "string",
  "rating": number (0-5),
  "numberOfReviews": number,
  "timeSlot": "morning | afternoon | evening",
  "referenceUrl": "string"
}}

Return {count} activities at most."""

single_activity_prompt = """Suggest ONE {category_hint}activity in {destination} for day {day_number}, in the {time_slot}.

Requirements:
- Price per person must not exceed {budget} {currency}
- It must fit the {time_slot} time slot
{exclude_line}
Return a JSON object with exactly this structure:
{{
  "activity": {{
    "name": "string",
    "description": "string",
    "price": number,
    "currency": "{currency}",
    "duration": number (hours),
    "category": "Cultural & Historical | Nature & Adventure | Food & Entertainment | Lifestyle & Local",
    "location": "string",
    "rating": number (0-5),
    "numberOfReviews": number,
    "referenceUrl": "string"
  }}
}}"""
