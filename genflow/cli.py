# genflow/cli.py
import argparse
import json
import logging
import mimetypes
import sys
from pathlib import Path

from dotenv import load_dotenv

from genflow.config import Settings
from genflow.context import build_context
from genflow.errors import GenerationError
from genflow.models import ImageBytes, ImageURL, Quality
from genflow.providers.base import to_data_url
from genflow.service import GenerationService

log = logging.getLogger("genflow.cli")


def _image_arg(value: str) -> str:
    """URLs pass through; local files become base64 data URLs."""
    if value.startswith(("http://", "https://", "data:")):
        return value
    path = Path(value).expanduser()
    try:
        data = path.read_bytes()
    except OSError as e:
        raise argparse.ArgumentTypeError(f"cannot read image {value}: {e.strerror or e}")
    ctype = mimetypes.guess_type(path.name)[0] or "image/png"
    return to_data_url(data, ctype)


def _print(data) -> None:
    print(json.dumps(data, indent=2))


def cmd_generate(service: GenerationService, args) -> int:
    request = service.build_request(
        " ".join(args.prompt),
        args.provider,
        model=args.model,
        quality=Quality(args.quality) if args.quality else None,
        aspect_ratio=args.aspect_ratio,
        source_images=args.source_image or (),
    )
    result = service.orchestrate(request)
    out = {"provider": request.provider_id, "model": request.model}
    if args.save:
        ref = service.ctx.assets.persist(result, request.prompt)
        out.update(url=ref.url, id=ref.id)
    elif isinstance(result, ImageURL):
        out["url"] = result.url
    elif isinstance(result, ImageBytes):
        out.update(content_type=result.content_type, bytes=len(result.data))
    _print(out)
    return 0


def cmd_alt_text(service: GenerationService, args) -> int:
    text = service.generate_alt_text(args.prompt or "", args.image, args.provider)
    print(text)
    return 0


def cmd_providers(service: GenerationService, args) -> int:
    store = service.ctx.store
    _print(
        {
            "configured": store.configured_providers(service.image_provider_ids()),
            "image_to_image": service.image_to_image_provider_ids(),
            "active": store.active_provider_id(service.image_provider_ids()),
        }
    )
    return 0


def cmd_serve(settings: Settings, args) -> int:
    import uvicorn

    from genflow.api.main import create_app

    app = create_app(build_context(settings))
    uvicorn.run(app, host=args.host, port=args.port, log_level=settings.LOG_LEVEL.lower())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="genflow")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("generate", help="generate an image")
    p.add_argument("prompt", type=str, nargs="+")
    p.add_argument("--provider", default=None, help="openai | replicate | fal | stub")
    p.add_argument("--model", default=None)
    p.add_argument("--aspect-ratio", default=None)
    p.add_argument("--quality", choices=[q.value for q in Quality], default=None)
    p.add_argument("--source-image", action="append", help="reference image URL (repeatable)")
    p.add_argument("--save", action="store_true", help="persist to the outputs dir")

    p = sub.add_parser("alt-text", help="describe an image")
    p.add_argument("image", type=_image_arg, help="image URL or local file")
    p.add_argument("--prompt", default=None)
    p.add_argument("--provider", default=None, help="openai | replicate")

    sub.add_parser("providers", help="list usable providers")

    p = sub.add_parser("serve", help="run the REST API")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8000)
    return parser


def main(argv=None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    settings = Settings()
    logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    if args.command == "serve":
        return cmd_serve(settings, args)

    service = GenerationService(build_context(settings))
    handlers = {
        "generate": cmd_generate,
        "alt-text": cmd_alt_text,
        "providers": cmd_providers,
    }
    try:
        return handlers[args.command](service, args)
    except GenerationError as e:
        log.error("command=%s kind=%s message=%s", args.command, e.kind.value, e.message)
        _print({"ok": False, "error": e.to_dict()})
        return 1


if __name__ == "__main__":
    sys.exit(main())
