"""Server command line: run the collection API or print a config template."""

from __future__ import annotations

import argparse
import logging
import sys

from livedigest.pipeline_config import PROVIDER_URLS, CompletionProvider

CONFIG_TEMPLATE = """\
completion_provider = "{provider}"
completion_api_url = "{url}"
completion_model = "{model}"
webhook_url = "https://example.com/webhook"
# JSON template for the webhook payload; {{summary}} will be replaced
webhook_template = '{{"summary":"{{summary}}"}}'
whisper_model = "base.en"
# Leave empty to keep summary state in memory
supabase_url = ""
summary_policy = "immediate"

[[systems]]
key = "default"
initial_prompt = "Summarize this transcription: {{transcription}}"
update_prompt = \"\"\"
Here is text summary:
{{summary}}
Please update this summary with new information from this transcription:
{{transcription}}
\"\"\"
"""

DEFAULT_MODELS = {
    CompletionProvider.ANTHROPIC: "claude-sonnet-4-20250514",
    CompletionProvider.OLLAMA: "llama3",
}


def render_config_template(provider: CompletionProvider) -> str:
    return CONFIG_TEMPLATE.format(
        provider=provider.value,
        url=PROVIDER_URLS[provider],
        model=DEFAULT_MODELS.get(provider, "gpt-3.5-turbo"),
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Live audio summary collection server")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.add_argument("--log-level", default="info")

    gen = sub.add_parser("gen-config", help="Print a config.toml template")
    gen.add_argument(
        "provider",
        nargs="?",
        default=CompletionProvider.OPENAI.value,
        choices=[p.value for p in CompletionProvider],
    )

    args = parser.parse_args(argv)

    if args.command == "gen-config":
        sys.stdout.write(render_config_template(CompletionProvider(args.provider)))
        return 0

    import uvicorn

    from livedigest.config import settings

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "livedigest.api.main:app",
        host=args.host or settings.api_host,
        port=args.port or settings.api_port,
        log_level=args.log_level,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
