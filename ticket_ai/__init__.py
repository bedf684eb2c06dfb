"""
Ticket Assistant Package

Conversational assistant for an event ticket storefront:
- Session state driven by a pure reducer
- Per-session knowledge synced from the storefront Data API
- TTL search-result cache with a periodic sweep
- Keyword intent classification + action execution
- Generation with credential failover
"""

__version__ = "1.0.0"

# Package structure:
# ticket_ai/
# ├── __init__.py           <- This file
# ├── main.py               <- FastAPI application entry
# ├── config.py             <- Configuration settings
# ├── errors.py             <- Error taxonomy
# │
# ├── agents/
# │   ├── action_executor.py <- Intent handlers
# │   └── assistant_agent.py <- Chat session + session registry
# │
# ├── api/
# │   └── chat.py           <- /api/ai routes
# │
# ├── interfaces/
# │   ├── data_interface.py <- Data API contract + httpx client
# │   ├── session_memory.py <- Per-session knowledge
# │   ├── knowledge_sync.py <- Age-threshold refresh
# │   ├── session_store.py  <- SessionState + reduce()
# │   └── pending_store.py  <- Pending navigation slot
# │
# ├── llm/
# │   ├── intent_parser.py  <- Input -> intent
# │   ├── prompts.py        <- Prompt template + knowledge summary
# │   ├── credential_pool.py
# │   └── dispatcher.py     <- Generation with failover
# │
# ├── cache/
# │   ├── ttl_cache.py
# │   └── redis_client.py
# │
# ├── algorithms/
# │   └── knowledge_stats.py
# │
# ├── schemas/
# │   └── ai_schemas.py
# │
# └── utils/
#     └── ai_helpers.py
