from __future__ import annotations

import logging
from dataclasses import asdict
from pathlib import Path

from fastapi import FastAPI, Form, HTTPException, Request
from fastapi.responses import HTMLResponse
from jinja2 import Environment, FileSystemLoader, select_autoescape

from saveit.core.enrichment import IntentError, get_search_intent
from saveit.core.library import LibraryView
from saveit.core.llm_providers import LLMProvider, get_chat_provider
from saveit.core.prompts import list_prompts, reset_prompt, save_prompt
from saveit.core.search import SearchIntent, search_items
from saveit.core.settings import Settings
from saveit.core.storage import get_db, init_db
from saveit.core.topics import ALL_FILTER_ID, category_filters

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent
TEMPLATES_DIR = BASE_DIR / "templates"

jinja = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html", "xml"]),
)

app = FastAPI(title="saveit")

_view: LibraryView | None = None


def _llm() -> LLMProvider:
    s = Settings.from_env()
    return get_chat_provider(s.llm_provider, s.chat_model)


async def _extract_intent(query: str) -> SearchIntent:
    return await get_search_intent(query, _llm(), get_db())


@app.on_event("startup")
def _startup() -> None:
    global _view
    init_db()
    s = Settings.from_env()
    _view = LibraryView(
        get_db(),
        _extract_intent,
        debounce_seconds=s.intent_debounce_seconds,
        min_query_length=s.intent_min_query_length,
    )
    _view.refresh()


@app.on_event("shutdown")
def _shutdown() -> None:
    if _view is not None:
        _view.close()


def get_view() -> LibraryView:
    assert _view is not None, "Library view not initialized"
    return _view


def render(template_name: str, **ctx) -> HTMLResponse:
    template = jinja.get_template(template_name)
    return HTMLResponse(template.render(**ctx))


async def _one_shot_intent(q: str) -> SearchIntent | None:
    """Derive an intent right away (no debounce) for a long enough query."""
    s = Settings.from_env()
    if len(q.strip()) <= s.intent_min_query_length:
        return None
    try:
        return await _extract_intent(q.strip())
    except IntentError as e:
        logger.warning(f"Searching without intent: {e}")
        return None


@app.get("/", response_class=HTMLResponse)
async def library(request: Request, q: str = "", category: str = ALL_FILTER_ID):
    """Library page with natural-language search."""
    items = get_db().get_all()
    intent = await _one_shot_intent(q)
    rows = search_items(items, category, q, intent)
    return render(
        "library.html",
        request=request,
        q=q,
        category=category.lower(),
        intent=intent,
        filters=category_filters(items),
        rows=rows,
    )


# ==================== Items ====================


@app.get("/api/items")
def api_items():
    return {"items": [item.to_dict() for item in get_db().get_all()]}


@app.post("/api/items")
async def api_capture(url: str = Form(...)):
    """Capture a link. Enrichment continues in the background."""
    url = url.strip()
    if not url:
        raise HTTPException(status_code=400, detail="URL is required")

    item = await get_view().add(url)
    return {"item": item.to_dict()}


@app.delete("/api/items/{item_id}")
def api_delete(item_id: str):
    if not get_view().delete(item_id):
        raise HTTPException(status_code=404, detail="Item not found")
    return {"success": True}


@app.get("/api/filters")
def api_filters():
    return {"filters": category_filters(get_db().get_all())}


@app.get("/api/stats")
def api_stats():
    return get_db().get_stats()


# ==================== Search ====================


@app.get("/api/search")
async def api_search(q: str = "", category: str = ALL_FILTER_ID):
    """One-shot search: intent is derived immediately, without debounce.

    Args:
        q: Free-text query, e.g. 'last finance reel'
        category: Active category filter id ('all' for none)
    """
    items = get_db().get_all()
    intent = await _one_shot_intent(q)
    results = search_items(items, category, q, intent)
    return {
        "query": q,
        "category": category.lower(),
        "intent": intent.to_dict() if intent else None,
        "results": [item.to_dict() for item in results],
    }


@app.get("/api/view")
async def api_view(wait: bool = False):
    """Current state of the interactive view.

    Args:
        wait: Fire a scheduled intent extraction now and wait for it
    """
    view = get_view()
    if wait:
        await view.flush()
    return view.to_dict()


@app.post("/api/view/query")
async def api_view_query(q: str = Form("")):
    view = get_view()
    view.set_query(q)
    return view.to_dict()


@app.post("/api/view/category")
def api_view_category(category: str = Form(ALL_FILTER_ID)):
    view = get_view()
    view.set_category(category)
    return view.to_dict()


# ==================== Prompts ====================


@app.get("/api/prompts")
def api_prompts():
    return {"prompts": [asdict(p) for p in list_prompts(get_db())]}


@app.post("/api/prompts/{key}")
def api_save_prompt(
    key: str,
    template: str = Form(...),
    temperature: float = Form(...),
    max_tokens: int = Form(...),
):
    if not save_prompt(key, template, temperature, max_tokens, get_db()):
        raise HTTPException(status_code=404, detail=f"Unknown prompt: {key}")
    return {"success": True}


@app.post("/api/prompts/{key}/reset")
def api_reset_prompt(key: str):
    if not reset_prompt(key, get_db()):
        raise HTTPException(status_code=404, detail=f"Unknown prompt: {key}")
    return {"success": True}


# ==================== Providers ====================


@app.get("/api/providers/health")
async def api_providers_health():
    """Check that the configured chat provider is reachable."""
    try:
        llm = _llm()
    except ValueError as e:
        return {"healthy": False, "message": str(e)}
    result = await llm.health_check()
    return asdict(result)
