#!/usr/bin/env python3
"""
Run the Task Orchestrator API server.

Usage:
    python run.py                    # Run on default port 8000
    python run.py --port 8080        # Run on custom port
    python run.py --reload           # Run with hot reload (dev mode)

Environment Variables (set in .env file or export):
    ANTHROPIC_API_KEY=sk-ant-...    # Primary: Your Anthropic/Claude API key
    OPENAI_API_KEY=sk-...           # Fallback: OpenAI API key (if no Anthropic)
    TAVILY_API_KEY=tvly-...         # Optional: enables the "search" action
    AGENT_MOCK_MODE=true            # Optional: canned outputs, no API calls
"""

import argparse
import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env before config.py reads the environment
load_dotenv(Path(__file__).parent / ".env")


def main():
    from config import config

    parser = argparse.ArgumentParser(description="Run the Task Orchestrator API")
    parser.add_argument("--host", default=config.api_host, help="Host to bind to")
    parser.add_argument("--port", type=int, default=config.api_port, help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    args = parser.parse_args()

    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if config.mock_mode:
        print("ℹ️  Mock mode: stages return canned outputs, no API calls.")
    elif not config.validate():
        print("⚠️  Warning: No LLM API key found. Stages will fall back to default answers.")
        print("   Set ANTHROPIC_API_KEY (recommended) or OPENAI_API_KEY in your environment.")
    elif config.llm_provider == "anthropic":
        print("✅ Using Claude (Anthropic) as LLM provider")
    else:
        print("✅ Using OpenAI as LLM provider")

    if not os.getenv("TAVILY_API_KEY"):
        print("ℹ️  Note: TAVILY_API_KEY not set. The search action will fall back to reasoning.")

    print(f"""
🚀 Starting server at http://{args.host}:{args.port}
📖 API docs at http://localhost:{args.port}/docs
""")

    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload
    )


if __name__ == "__main__":
    main()
