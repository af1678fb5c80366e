"""
CLI for SocialPulse Media.

Thin command-line surface over the image generation gateway: generate an
image, preview the enhanced prompt, and inspect provider configuration.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from socialpulse_media import __version__
from socialpulse_media.config import GLOBAL_CONFIG_FILE, GatewayConfiguration
from socialpulse_media.generators.manager import ProviderManager
from socialpulse_media.models import AspectRatio, CameraAngle, GenerationRequest, ImageStyle, ReferenceImage
from socialpulse_media.prompting import enhance_prompt

console = Console()

MIME_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
    "image/gif": ".gif",
}


def _choice(enum_cls) -> click.Choice:
    return click.Choice([member.value for member in enum_cls], case_sensitive=False)


def request_options(func):
    """Options shared by commands that build a GenerationRequest."""
    options = [
        click.option("--aspect-ratio", "-r", type=_choice(AspectRatio), help="Aspect ratio"),
        click.option("--camera-angle", "-a", type=_choice(CameraAngle), help="Camera angle"),
        click.option("--style", "-s", type=_choice(ImageStyle), help="Image style"),
        click.option("--model", "-m", help="Backend-specific model id"),
        click.option("--count", "image_count", type=click.IntRange(min=1), default=1, help="Number of images to request"),
        click.option("--product", "product_path", type=click.Path(exists=True, dir_okay=False), help="Product reference image"),
        click.option("--presenter", "presenter_path", type=click.Path(exists=True, dir_okay=False), help="Presenter reference image"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_request(
    prompt: tuple,
    aspect_ratio: Optional[str],
    camera_angle: Optional[str],
    style: Optional[str],
    model: Optional[str],
    image_count: int,
    product_path: Optional[str],
    presenter_path: Optional[str],
) -> GenerationRequest:
    return GenerationRequest(
        prompt=" ".join(prompt),
        aspect_ratio=AspectRatio.from_string(aspect_ratio) if aspect_ratio else None,
        camera_angle=CameraAngle.from_string(camera_angle) if camera_angle else None,
        style=ImageStyle.from_string(style) if style else None,
        model=model,
        image_count=image_count,
        product_image=ReferenceImage.from_file(product_path) if product_path else None,
        presenter_image=ReferenceImage.from_file(presenter_path) if presenter_path else None,
    )


def _status(configured: bool) -> str:
    return "[green]configured[/green]" if configured else "[red]missing[/red]"


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help=f"Config file (default: {GLOBAL_CONFIG_FILE})")
@click.option("--verbose", "-v", is_flag=True, help="Show gateway logs")
@click.pass_context
def main(ctx: click.Context, config_path: Optional[Path], verbose: bool):
    """SocialPulse Media - multi-provider image generation gateway."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )
    ctx.obj = {"config": GatewayConfiguration.load(config_path)}


@main.command()
@click.argument("prompt", nargs=-1, required=True)
@request_options
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Where to save the image")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def generate(ctx: click.Context, prompt: tuple, output: Optional[Path], json_output: bool, **options):
    """Generate an image from a prompt."""
    request = build_request(prompt, **options)
    config: GatewayConfiguration = ctx.obj["config"]

    with ProviderManager(config=config) as manager:
        if json_output:
            result = manager.generate_image(request)
        else:
            console.print(f"[bold]Generating:[/bold] {enhance_prompt(request)}")
            with console.status(f"Waiting for {config.primary}..."):
                result = manager.generate_image(request)

    if not result.success:
        if json_output:
            print(json.dumps(result.to_dict()))
        else:
            console.print(f"[red]Generation failed ({result.error_kind}):[/red] {result.error}")
        sys.exit(1)

    saved_path = None
    if output and result.image:
        if not output.suffix:
            output = output.with_suffix(MIME_EXTENSIONS.get(result.image.mime_type, ".png"))
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(result.image.data)
        saved_path = output

    if json_output:
        data = result.to_dict()
        if saved_path:
            data["savedTo"] = str(saved_path)
        print(json.dumps(data))
        return

    table = Table(show_header=False, box=None)
    metadata = result.provider_metadata
    table.add_row("Provider", f"[bold]{metadata.get('provider', '?')}[/bold]")
    if metadata.get("model"):
        table.add_row("Model", metadata["model"])
    if metadata.get("task_id"):
        table.add_row("Task", metadata["task_id"])
    if result.image:
        table.add_row("Image", f"{result.image.mime_type}, {len(result.image.data)} bytes")
    if result.image_url:
        table.add_row("URL", result.image_url)
    for extra in metadata.get("all_urls", [])[1:]:
        table.add_row("Also", extra)
    if saved_path:
        table.add_row("Saved", str(saved_path))
    elif output:
        table.add_row("Saved", "[yellow]not saved - provider returned a URL only[/yellow]")

    console.print(Panel(table, title="[green]Image generated[/green]", border_style="green"))


@main.command()
@click.argument("prompt", nargs=-1, required=True)
@request_options
def enhance(prompt: tuple, **options):
    """Show the enhanced prompt a request would send, without generating."""
    request = build_request(prompt, **options)
    console.print(enhance_prompt(request), markup=False, highlight=False)


@main.command()
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def providers(ctx: click.Context, json_output: bool):
    """List image providers and whether they are configured."""
    config: GatewayConfiguration = ctx.obj["config"]

    with ProviderManager(config=config) as manager:
        descriptors = manager.available_providers()

        if json_output:
            print(json.dumps({"providers": [d.to_dict() for d in descriptors]}))
            return

        table = Table(title="Image Providers")
        table.add_column("Provider")
        table.add_column("Name")
        table.add_column("Status")
        table.add_column("Models")
        for descriptor in descriptors:
            role = ""
            if descriptor.provider_id == config.primary:
                role = " [cyan](primary)[/cyan]"
            elif descriptor.provider_id == config.fallback:
                role = " [cyan](fallback)[/cyan]"
            table.add_row(
                descriptor.provider_id + role,
                descriptor.display_name,
                _status(descriptor.configured),
                "\n".join(descriptor.models),
            )
        console.print(table)


@main.command("check-keys")
@click.pass_context
def check_keys(ctx: click.Context):
    """Check API key configuration status."""
    config: GatewayConfiguration = ctx.obj["config"]
    issues = config.validate()

    console.print("[bold]API Key Status:[/bold]")
    for provider_id in config.providers:
        console.print(f"  {provider_id}: {_status(config.is_configured(provider_id))}")
    console.print(f"\nPrimary: [bold]{config.primary}[/bold]  Fallback: [bold]{config.fallback or 'none'}[/bold]")

    if issues:
        console.print("\n[red]Configuration issues:[/red]")
        for issue in issues:
            console.print(f"  - {issue}")
        sys.exit(1)
    else:
        console.print("\n[green]All required keys configured![/green]")


if __name__ == "__main__":
    main()
