"""Canonical papers index: embedding-enabled mapping with the contextual content field."""

from __future__ import annotations

import copy
from typing import Any

EMBEDDING_FIELD = "embeddingVector"
CONTEXTUAL_FIELD = "contextualContent"
FULL_TEXT_FIELD = "fullText"
HEAVY_FIELDS = [EMBEDDING_FIELD, CONTEXTUAL_FIELD, FULL_TEXT_FIELD]

MAX_RESULT_WINDOW = 50000
NUMBER_OF_SHARDS = 30
NUMBER_OF_REPLICAS = 1
REFRESH_INTERVAL = "-1"
KNN_EF_SEARCH = 128
HNSW_EF_CONSTRUCTION = 128
HNSW_M = 24

_SCORE = {"type": "double", "null_value": 0.0}
_TEXT_WITH_KEYWORD = {"type": "text", "fields": {"keyword": {"type": "keyword"}}}

_MAPPING_PROPERTIES: dict[str, Any] = {
    "id": {"type": "keyword"},
    "oipubId": {"type": "keyword"},
    "doi": {"type": "keyword"},
    "title": {"type": "text", "analyzer": "standard", "fields": {"keyword": {"type": "keyword"}}},
    "abstract": {"type": "text", "analyzer": "standard"},
    "openSummary": {"type": "text", "analyzer": "standard"},
    FULL_TEXT_FIELD: {"type": "text", "analyzer": "standard"},
    "journal": _TEXT_WITH_KEYWORD,
    "publisher": _TEXT_WITH_KEYWORD,
    "authors": {
        "type": "nested",
        "properties": {
            "name": {"type": "keyword"},
            "ORCID": {"type": "keyword"},
            "sequence": {"type": "keyword"},
        },
    },
    "publishedAt": {"type": "date", "null_value": "0001-01-01"},
    "publicationDateParts": {"type": "integer"},
    "publicationHotScore": _SCORE,
    "publicationHotScore6m": _SCORE,
    "pageRank": _SCORE,
    "citationsCount": {"type": "integer", "null_value": 0},
    "voteScore": {"type": "integer", "null_value": 0},
    "topics": {
        "type": "nested",
        "properties": {
            "name": {"type": "keyword"},
            "relevanceScore": _SCORE,
            "topScore": _SCORE,
            "hotScore": _SCORE,
            "hotScore6m": _SCORE,
        },
    },
    "hasAbstract": {"type": "boolean"},
    "hasOpenSummary": {"type": "boolean"},
    CONTEXTUAL_FIELD: {
        "type": "text",
        "analyzer": "standard",
        "fields": {
            "english": {"type": "text", "analyzer": "english"},
            "keyword": {"type": "keyword", "ignore_above": 256},
        },
    },
}


def mapping_properties(embedding_dim: int = 768) -> dict[str, Any]:
    properties = copy.deepcopy(_MAPPING_PROPERTIES)
    properties[EMBEDDING_FIELD] = {
        "type": "knn_vector",
        "dimension": embedding_dim,
        "method": {
            "name": "hnsw",
            "space_type": "cosinesimil",
            "engine": "lucene",
            "parameters": {"ef_construction": HNSW_EF_CONSTRUCTION, "m": HNSW_M},
        },
    }
    return properties


def index_settings() -> dict[str, Any]:
    return {
        "index": {
            "max_result_window": MAX_RESULT_WINDOW,
            "number_of_shards": NUMBER_OF_SHARDS,
            "number_of_replicas": NUMBER_OF_REPLICAS,
            "refresh_interval": REFRESH_INTERVAL,
            "knn": True,
            "knn.algo_param.ef_search": KNN_EF_SEARCH,
        }
    }


def index_body(alias: str = "papers", embedding_dim: int = 768) -> dict[str, Any]:
    return {
        "settings": index_settings(),
        "aliases": {alias: {"is_write_index": True}},
        "mappings": {"properties": mapping_properties(embedding_dim)},
    }
