ROUTERS = {
    "LLMRouter": "routers.llm_router",
    "PatternRouter": "routers.pattern_router",
}
