# schema.py
from datetime import datetime

from jsonschema import Draft7Validator, validators

customers_schema = {
    "bsonType": "object",
    "required": ["_id", "first_name", "last_name", "email", "created_at"],
    "properties": {
        "_id": {"bsonType": "int"},
        "first_name": {"bsonType": "string"},
        "last_name": {"bsonType": "string"},
        "email": {"bsonType": "string"},
        "created_at": {"bsonType": "date"}
    }
}

orders_schema = {
    "bsonType": "object",
    "required": ["_id", "customer_id", "order_date", "status", "total"],
    "properties": {
        "_id": {"bsonType": "int"},
        "customer_id": {"bsonType": "int"},
        "order_date": {"bsonType": "date"},
        "status": {"bsonType": "string"},
        "total": {"bsonType": ["double", "int"]}
    }
}

SCHEMAS = {
    "customers": customers_schema,
    "orders": orders_schema,
}

_BSON_TO_JSON_TYPES = {
    "string": "string",
    "int": "integer",
    "long": "integer",
    "double": "number",
    "decimal": "number",
    "bool": "boolean",
    "date": "datetime",
    "null": "null",
    "object": "object",
    "array": "array",
}

# documents come back from pymongo as python objects, so BSON dates are
# checked as datetime instances rather than ISO strings
_type_checker = Draft7Validator.TYPE_CHECKER.redefine(
    "datetime", lambda checker, instance: isinstance(instance, datetime)
)
DocumentValidator = validators.extend(Draft7Validator, type_checker=_type_checker)

_JSON_SCHEMA_CACHE: dict = {}


def bson_to_jsonschema(bson_schema: dict) -> dict:
    props = {}
    for key, prop in bson_schema.get("properties", {}).items():
        bson_type = prop.get("bsonType")
        types = bson_type if isinstance(bson_type, list) else [bson_type]
        json_types = [_BSON_TO_JSON_TYPES.get(t, "string") for t in types]
        props[key] = {"type": json_types[0] if len(json_types) == 1 else json_types}

    json_schema = {"type": "object", "properties": props}
    if "required" in bson_schema:
        json_schema["required"] = bson_schema["required"]
    return json_schema


def document_errors(collection: str, doc: dict) -> list:
    """Return readable validation messages for `doc`; empty when valid."""
    bson_sch = SCHEMAS.get(collection)
    if bson_sch is None:
        return []
    if collection not in _JSON_SCHEMA_CACHE:
        _JSON_SCHEMA_CACHE[collection] = DocumentValidator(bson_to_jsonschema(bson_sch))
    validator = _JSON_SCHEMA_CACHE[collection]
    return [e.message for e in sorted(validator.iter_errors(doc), key=lambda e: list(e.path))]


def validate_document(collection: str, doc: dict) -> bool:
    return not document_errors(collection, doc)
