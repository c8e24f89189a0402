from src.api.service import ServiceBundle
from src.core.config import ApiSettings
from fastapi import FastAPI
from contextlib import asynccontextmanager
from typing import AsyncGenerator
from functools import lru_cache


@lru_cache(maxsize=1)
def get_service_bundle() -> ServiceBundle:
    settings = ApiSettings.from_env()
    return ServiceBundle(settings)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    try:
        yield
    finally:
        if get_service_bundle.cache_info().currsize:
            await get_service_bundle().close()
