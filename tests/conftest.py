import os

# Task modules build Settings at import time; no database is reached in tests.
for _key, _value in {
    "POSTGRES_USER": "indexer",
    "POSTGRES_PASSWORD": "indexer",
    "POSTGRES_SERVER": "localhost",
    "POSTGRES_PORT": "5432",
    "POSTGRES_DB": "eigen_indexer",
}.items():
    os.environ.setdefault(_key, _value)
