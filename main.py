# main.py

from argparse import ArgumentParser

from uvicorn import run

from klog.main import app


def main() -> None:
    parser = ArgumentParser(description="Serve the klog API")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--workers", type=int, default=1)
    parser.add_argument("--reload", action="store_true")
    args = parser.parse_args()
    # Reload and multiple workers need an import string rather than the app object
    run(
        "klog.main:app",
        host=args.host,
        port=args.port,
        workers=args.workers,
        reload=args.reload,
        log_level="info",
        proxy_headers=True,
    )


if __name__ == "__main__":
    __all__ = ["app"]
    main()
