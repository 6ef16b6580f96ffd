"""
Schema service.

Loads a model's JSON schema, validates and normalizes it, adds default actions
and caches the result. Request handlers go through ``get_schema_service()``
so a single cache is shared across the process.
"""
import logging
from functools import lru_cache
from typing import Any, Dict, Optional

from crud6.exceptions import SchemaNotFoundException
from crud6.schema import actions, filter as context_filter, loader, normalizer, translator, validator
from crud6.schema.cache import SchemaCache

logger = logging.getLogger(__name__)


class SchemaService:
    def __init__(self, cache: Optional[SchemaCache] = None):
        self.cache = cache or SchemaCache()

    def get_schema(self, model: str, connection: Optional[str] = None) -> Dict[str, Any]:
        cached = self.cache.get(model, connection)
        if cached is not None:
            return cached

        schema, from_connection = loader.load(model, connection)
        if schema is None:
            raise SchemaNotFoundException(f"Schema file not found for model: {model}")

        loader.apply_defaults(schema)
        validator.validate(schema, model)
        if from_connection and connection and "connection" not in schema:
            schema["connection"] = connection
        normalizer.normalize(schema)
        actions.add_default_actions(schema)

        self.cache.set(schema, model, connection)
        logger.info("schema_resolved: model=%s connection=%s", model, connection or "default")
        return self.cache.get(model, connection) or schema

    def get_context_schema(
        self,
        model: str,
        context: Optional[str] = None,
        connection: Optional[str] = None,
    ) -> Dict[str, Any]:
        schema = self.get_schema(model, connection)
        return translator.translate(context_filter.filter_for_context(schema, context))

    def clear_cache(self, model: Optional[str] = None, connection: Optional[str] = None) -> None:
        if model is None:
            self.cache.clear_all()
        else:
            self.cache.clear(model, connection)


@lru_cache()
def get_schema_service() -> SchemaService:
    return SchemaService()
