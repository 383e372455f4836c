"""
Weather Edge: weather-sensitive prediction market discovery + analysis.

Layers:
  polymarket/   Gamma market fetcher, models, boundary normalisation
  domains/      Domain policy (weather edge scoring, futures, ranking, prompts)
  strategies/   Analysis types, LLM client, response recovery
  service/      Caches, orchestration, HTTP API, persistence, config
  mcp/          MCP server exposing discovery + analysis to agents
"""
