"""CLI for the media worker."""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path

import click

from media_shared.files import ALLOWED_IMG_EXTS, find_free_tcp_port, guess_content_type
from media_shared.protocol import OUTPUT_FORMATS, BinaryObject, Request, Response
from media_transcoder import TranscodePipeline

from .client import spawn_local
from .config import WorkerConfig
from .server import WorkerServer


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


async def _run_local(request: Request, config: WorkerConfig) -> Response:
    pipeline = TranscodePipeline(
        fetch_timeout=config.fetch_timeout,
        max_fetch_bytes=config.max_fetch_bytes,
        allowed_root=config.allowed_root,
    )
    async with spawn_local(pipeline, name="cli") as client:
        return await client.request(request)


def _finish(response: Response, output: Path) -> None:
    if not response.ok:
        raise click.ClickException(response.error or "Unknown error")
    assert response.binary is not None
    output.write_bytes(response.binary.data)
    click.echo(f"Wrote {len(response.binary)} bytes ({response.binary.content_type}) to {output}")


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Media transcode worker."""
    _setup_logging(verbose)
    ctx.obj = WorkerConfig.load()


@cli.command()
@click.option("-h", "--host", default=None, help="Worker host")
@click.option("-p", "--port", default=None, type=int, help="Worker port")
@click.pass_obj
def serve(config: WorkerConfig, host: str | None, port: int | None) -> None:
    """Run a worker runtime over TCP."""
    host = host or config.host
    port = config.port if port is None else port

    actual_port = find_free_tcp_port(host, port)
    if actual_port != port:
        logging.info("Port %d busy, using %d", port, actual_port)

    server = WorkerServer(replace(config, host=host, port=actual_port))
    try:
        server.run()
    except KeyboardInterrupt:
        logging.info("Interrupted")


@cli.command()
@click.argument("source")
@click.argument("output", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--max-width", required=True, type=click.IntRange(min=1), help="Maximum output width")
@click.option("--max-height", required=True, type=click.IntRange(min=1), help="Maximum output height")
@click.option("-q", "--quality", default=0.8, show_default=True,
              type=click.FloatRange(0.1, 1.0), help="Encoder quality")
@click.option("-f", "--format", "output_format", default="jpeg", show_default=True,
              type=click.Choice(OUTPUT_FORMATS), help="Output format")
@click.option("--base64-out", type=click.Path(dir_okay=False, path_type=Path),
              help="Also write the base64 text form here")
@click.pass_obj
def transcode(
    config: WorkerConfig,
    source: str,
    output: Path,
    max_width: int,
    max_height: int,
    quality: float,
    output_format: str,
    base64_out: Path | None,
) -> None:
    """Resize and re-encode SOURCE (file path or URL) into OUTPUT."""
    source_path = Path(source)
    image_source: BinaryObject | str = source
    if source_path.is_file():
        if source_path.suffix.lower() not in ALLOWED_IMG_EXTS:
            raise click.BadParameter(f"Unsupported input format: {source_path.suffix}")
        image_source = BinaryObject(
            data=source_path.read_bytes(),
            content_type=guess_content_type(source_path),
        )

    request = Request.transcode_image(
        image_source,
        max_width=max_width,
        max_height=max_height,
        quality=quality,
        output_format=output_format,
    )
    response = asyncio.run(_run_local(request, config))
    _finish(response, output)

    if base64_out is not None and response.text is not None:
        base64_out.write_text(response.text)
        click.echo(f"Wrote base64 text to {base64_out}")


@cli.command()
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("output", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--content-type", default="image/png", show_default=True, help="Tag for the decoded bytes")
@click.pass_obj
def decode(config: WorkerConfig, input_file: Path, output: Path, content_type: str) -> None:
    """Decode base64 text (or a data URI) in INPUT_FILE into OUTPUT."""
    request = Request.decode_binary(input_file.read_text(), content_type)
    response = asyncio.run(_run_local(request, config))
    _finish(response, output)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
