"""FastAPI application exposing read-only documentation lookups."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from oxidoc.config import AppConfig
from oxidoc.errors import CorruptEntry, InvalidPath, StoreCorrupt
from oxidoc.index.search import MATCHERS, Resolver, SearchResult
from oxidoc.index.storage import DocumentStore
from oxidoc.models import Item, split_path
from oxidoc.render import render_item

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="oxidoc", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
)


class ItemModel(BaseModel):
    path: str
    name: str
    kind: str
    signature: str
    docs: str
    crate: str
    version: str
    file: str
    line: int
    match: str | None = None
    rendered: str

    @classmethod
    def from_item(cls, item: Item, match: str | None = None) -> "ItemModel":
        return cls(
            path=item.path_string,
            name=item.name,
            kind=item.kind.value,
            signature=item.signature,
            docs=item.docs,
            crate=item.source.crate_name,
            version=item.source.crate_version,
            file=item.source.file.as_posix(),
            line=item.source.line,
            match=match,
            rendered=render_item(item),
        )


class CrateModel(BaseModel):
    name: str
    version: str
    lib_name: str


def _resolve_doc_root(doc_root: Path | None) -> Path:
    if doc_root is None:
        doc_root = getattr(app.state, "doc_root", None)
    config = AppConfig(doc_root=doc_root)
    return config.resolve_doc_root(Path.cwd())


def _to_models(results: List[SearchResult]) -> List[ItemModel]:
    return [ItemModel.from_item(result.item, result.match.value) for result in results]


@app.get("/lookup")
async def lookup(
    query: str, match: str = "exact", doc_root: Path | None = None
) -> dict[str, List[ItemModel]]:
    query = query.strip()
    if not query:
        raise HTTPException(status_code=400, detail="Empty query")
    matcher = MATCHERS.get(match)
    if matcher is None:
        raise HTTPException(status_code=400, detail=f"Unknown match mode: {match}")

    resolver = Resolver(DocumentStore(_resolve_doc_root(doc_root)), matcher=matcher)
    try:
        results = resolver.search(query)
    except InvalidPath as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StoreCorrupt as exc:
        LOGGER.error("Lookup of %r hit a damaged store: %s", query, exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return {"results": _to_models(results)}


@app.get("/crates")
async def list_crates(doc_root: Path | None = None) -> dict[str, List[CrateModel]]:
    store = DocumentStore(_resolve_doc_root(doc_root))
    try:
        crates = store.crates()
    except CorruptEntry as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return {"crates": [CrateModel(**metadata.to_dict()) for metadata in crates]}


@app.get("/items")
async def list_items(prefix: str = "", doc_root: Path | None = None) -> dict[str, List[ItemModel]]:
    store = DocumentStore(_resolve_doc_root(doc_root))
    try:
        segments = split_path(prefix) if prefix.strip() else ()
    except InvalidPath as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    try:
        items = store.list(segments)
    except CorruptEntry as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return {"items": [ItemModel.from_item(item) for item in items]}
