"""Command-line interface for the photo adjustment pipeline."""

import sys
from pathlib import Path

import click
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from photo_adjust import __version__
from photo_adjust.config import create_config, create_pipeline_config
from photo_adjust.logging_config import setup_logging
from photo_adjust.models import (
    AdjustmentParams,
    BatchResults,
    CropRect,
    FilterPreset,
    PreviewQuality,
    RenderResult,
    RenderStatus,
)
from photo_adjust.orchestrator import RenderOrchestrator
from photo_adjust.storage import EditStore

console = Console()


def display_progress_bar(files: list[Path], orchestrator: RenderOrchestrator) -> BatchResults:
    """Show a progress bar while a batch renders.

    Args:
        files: Files to render
        orchestrator: Orchestrator that performs the renders

    Returns:
        BatchResults from the render
    """
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("[cyan]Rendering images...", total=len(files))

        def progress_callback(current: int, _total: int, filename: str) -> None:
            progress.update(
                task,
                completed=current,
                description=f"[cyan]Rendering: {filename}",
            )

        orchestrator.progress_callback = progress_callback
        results = orchestrator.render_batch(files)

        progress.update(
            task,
            completed=len(files),
            description="[green]Rendering complete!",
        )

    return results


def display_summary(results: BatchResults) -> None:
    """Print the batch summary table plus any failed or skipped files."""
    table = Table(title="Render Summary", show_header=True, header_style="bold")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="magenta")

    table.add_row("Total Files", str(results.total_files))
    table.add_row("Successful", f"[green]{results.successful}[/green]")
    table.add_row("Failed", f"[red]{results.failed}[/red]")
    table.add_row("Skipped", f"[yellow]{results.skipped}[/yellow]")
    table.add_row("Success Rate", f"{results.success_rate():.1f}%")
    table.add_row("Total Time", f"{results.total_time:.2f}s")

    console.print()
    console.print(table)

    if results.failed > 0:
        console.print()
        console.print("[bold red]Failed Renders:[/bold red]")
        for result in results.results:
            if result.status == RenderStatus.FAILED:
                console.print(f"  [red]✗[/red] {result.input_path.name}: {result.error_message}")

    if results.skipped > 0:
        console.print()
        console.print("[bold yellow]Skipped Files:[/bold yellow]")
        for result in results.results:
            if result.status == RenderStatus.SKIPPED:
                console.print(
                    f"  [yellow]⊘[/yellow] {result.input_path.name}: {result.error_message}"
                )


def display_single_result(result: RenderResult) -> None:
    if result.status == RenderStatus.SUCCESS:
        console.print(
            f"[green]✓[/green] Rendered: {result.input_path.name} → "
            f"{result.output_path.name if result.output_path else 'N/A'} "
            f"({result.width}x{result.height}, {result.processing_time:.2f}s)"
        )
    elif result.status == RenderStatus.SKIPPED:
        console.print(
            f"[yellow]⊘[/yellow] Skipped: {result.input_path.name} - {result.error_message}"
        )
    else:
        console.print(f"[red]✗[/red] Failed: {result.input_path.name} - {result.error_message}")


def handle_error(error: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {error}", style="red")


def _parse_crop(
    _ctx: click.Context, _param: click.Parameter, value: str | None
) -> CropRect | None:
    if value is None:
        return None
    try:
        return CropRect.parse(value)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e


def _adjustment_option(name: str, low: float, high: float, default: float, help_text: str):
    return click.option(
        f"--{name}",
        type=click.FloatRange(low, high),
        default=default,
        show_default=True,
        help=help_text,
    )


@click.command()
@click.argument(
    "files",
    nargs=-1,
    type=click.Path(exists=True, path_type=Path),
    required=False,
)
@_adjustment_option("brightness", 0, 200, 100, "Brightness, 100 is neutral.")
@_adjustment_option("contrast", 0, 200, 100, "Contrast, 100 is neutral.")
@_adjustment_option("clarity", -100, 100, 0, "Local contrast.")
@_adjustment_option("sharpen", 0, 100, 0, "Unsharp mask amount.")
@_adjustment_option("saturation", 0, 200, 100, "Saturation, 100 is neutral.")
@_adjustment_option("vibrance", -100, 100, 0, "Saturation boost for muted colours.")
@click.option("--hue", type=float, default=0.0, help="Hue rotation in degrees.")
@_adjustment_option("temperature", -100, 100, 0, "Warm (positive) or cool (negative) shift.")
@_adjustment_option("vignette", 0, 100, 0, "Corner darkening.")
@_adjustment_option("noise", 0, 100, 0, "Film grain amount.")
@_adjustment_option("blur", 0, 100, 0, "Box blur amount.")
@click.option(
    "--filter",
    "filter_preset",
    type=click.Choice([p.value for p in FilterPreset], case_sensitive=False),
    default=FilterPreset.NONE.value,
    show_default=True,
    help="Filter preset.",
)
@click.option("--rotate", type=float, default=0.0, help="Clockwise rotation in degrees.")
@click.option("--flip-h", is_flag=True, default=False, help="Mirror left to right.")
@click.option("--flip-v", is_flag=True, default=False, help="Mirror top to bottom.")
@click.option(
    "--crop",
    callback=_parse_crop,
    default=None,
    metavar="X,Y,W,H",
    help="Crop rectangle applied after rotation and flips.",
)
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(path_type=Path),
    default=None,
    help="Output directory for rendered files. Default: same as input.",
)
@click.option(
    "--no-overwrite",
    is_flag=True,
    default=False,
    help="Skip existing files without prompting.",
)
@click.option(
    "--preview-quality",
    type=click.Choice([q.value for q in PreviewQuality], case_sensitive=False),
    default=None,
    help="Preview downscale level. Default: $PHOTO_ADJUST_PREVIEW_QUALITY or medium.",
)
@click.option(
    "--seed",
    type=int,
    default=None,
    help="Seed for reproducible noise.",
)
@click.option(
    "--save-to",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Also save each render to the edit store in this directory.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable verbose logging.",
)
@click.option(
    "--version",
    is_flag=True,
    default=False,
    help="Show version information and exit.",
)
@click.help_option("--help", "-h")
def main(
    files: tuple[Path, ...],
    brightness: float,
    contrast: float,
    clarity: float,
    sharpen: float,
    saturation: float,
    vibrance: float,
    hue: float,
    temperature: float,
    vignette: float,
    noise: float,
    blur: float,
    filter_preset: str,
    rotate: float,
    flip_h: bool,
    flip_v: bool,
    crop: CropRect | None,
    output_dir: Path | None,
    no_overwrite: bool,
    preview_quality: str | None,
    seed: int | None,
    save_to: Path | None,
    verbose: bool,
    version: bool,
) -> None:
    """Apply photo adjustments to images and write PNG results.

    FILES: One or more images (PNG, JPEG, GIF, BMP, TIFF, WebP).

    Examples:

        # Brighten a photo
        photo-adjust photo.jpg --brightness 120

        # Rotate, crop and apply a preset
        photo-adjust photo.jpg --rotate 90 --crop 0,0,800,600 --filter sepia

        # Batch render into a directory, keeping existing outputs
        photo-adjust *.jpg --contrast 130 -o ./edited --no-overwrite

        # Keep a copy of each render in a local edit store
        photo-adjust photo.jpg --vignette 40 --save-to ./edits
    """
    if version:
        console.print(f"Photo Adjust v{__version__}")
        sys.exit(0)

    try:
        file_list = list(files)

        if not file_list:
            console.print("[bold red]Error:[/bold red] No files specified.", style="red")
            sys.exit(1)

        logger = setup_logging(verbose=verbose)

        params = AdjustmentParams(
            rotation=rotate,
            flip_horizontal=flip_h,
            flip_vertical=flip_v,
            crop=crop,
            brightness=brightness,
            contrast=contrast,
            clarity=clarity,
            sharpen=sharpen,
            saturation=saturation,
            vibrance=vibrance,
            hue=hue,
            temperature=temperature,
            filter_preset=FilterPreset(filter_preset.lower()),
            vignette=vignette,
            noise=noise,
            blur=blur,
        )
        config = create_config(
            params=params,
            output_dir=output_dir,
            no_overwrite=no_overwrite,
            verbose=verbose,
            pipeline=create_pipeline_config(
                preview_quality=preview_quality.lower() if preview_quality else None,
                noise_seed=seed,
            ),
        )
        store = EditStore(save_to, logger=logger) if save_to is not None else None

        orchestrator = RenderOrchestrator(config, logger, store=store)

        if verbose:
            changes = params.changes_from(AdjustmentParams())
            console.print(
                "[cyan]Adjustments:[/cyan] "
                + (", ".join(f"{k}={v}" for k, v in changes.items()) or "none")
            )
            console.print(
                f"[cyan]Output Directory:[/cyan] "
                f"{config.output_dir if config.output_dir else 'Same as input'}"
            )
            console.print(f"[cyan]No Overwrite:[/cyan] {config.no_overwrite}")
            console.print(f"[cyan]Preview Quality:[/cyan] {config.pipeline.preview_quality.value}")
            console.print()

        if len(file_list) == 1:
            console.print(f"Rendering: [cyan]{file_list[0].name}[/cyan]")
            result = orchestrator.render_single(file_list[0])
            display_single_result(result)

            if result.status == RenderStatus.FAILED:
                sys.exit(1)
        else:
            console.print(f"Rendering [cyan]{len(file_list)}[/cyan] files...")
            results = display_progress_bar(file_list, orchestrator)
            display_summary(results)

            if results.failed > 0:
                sys.exit(1)

    except Exception as e:
        handle_error(e)
        sys.exit(1)


if __name__ == "__main__":
    main()
