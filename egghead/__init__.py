"""
Top-level package for Egghead, the world's smartest computer (a Discord bot).

This package hosts:
- config loading and validation, persona prompts
- completion backends (OpenAI-style, Ollama, llama.cpp) and Ollama chat
- the FakeYou text-to-speech job poller
- news/Wikipedia/Hacker News fetchers
- the blog post pipeline, its SQLite store and its interval scheduler
- a platform-free command dispatcher and the Discord surface on top of it
"""
