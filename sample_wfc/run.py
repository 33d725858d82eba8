import argparse
import logging
import time

import pygame
from tqdm import tqdm

from sample_wfc.config import BUILTIN_SAMPLES, RunConfig, load_config, save_config
from sample_wfc.render import WFCRenderer, save_output, tile_atlas
from sample_wfc.tiles import extract_tiles
from sample_wfc.wfc import CollapseEngine


def run_headless(engine: CollapseEngine, max_steps=None) -> None:
    total = engine.total_cells if max_steps is None else min(max_steps, engine.total_cells)
    with tqdm(total=total, desc="Collapsing", leave=False) as progress:
        while not engine.done:
            if max_steps is not None and engine.steps >= max_steps:
                break
            engine.step()
            progress.update(1)


def run_rendered(engine: CollapseEngine, sample, config: RunConfig) -> None:
    """One engine tick per frame until done, then keep the window open until quit"""
    renderer = WFCRenderer(
        (sample.width, sample.height),
        (engine.width, engine.height),
        pixel_size=config.pixel_size,
    )
    clock = pygame.time.Clock()
    running = True

    while running and not engine.done:
        if renderer.handle_events():
            running = False
            break
        if config.max_steps is not None and engine.steps >= config.max_steps:
            break
        engine.step()
        renderer.render(sample.pixels, engine.snapshot(), engine.entropy_grid())
        clock.tick(config.fps)

    renderer.render(sample.pixels, engine.snapshot())
    while running:
        if renderer.handle_events():
            running = False
        pygame.time.delay(10)
    renderer.close()


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Generate an image that locally resembles a sample with a simplified Wave Function Collapse."
    )
    parser.add_argument("--config", type=str, default=None, help="Path to YAML file with run settings")
    parser.add_argument(
        "--sample",
        type=str,
        default=None,
        help=f"Sample image path or one of {', '.join(BUILTIN_SAMPLES)}",
    )
    parser.add_argument("--width", type=int, default=None, help="Output width in cells")
    parser.add_argument("--height", type=int, default=None, help="Output height in cells")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument(
        "--scan-order",
        type=str,
        default=None,
        choices=["row", "column"],
        help="Order tiles are extracted in",
    )
    parser.add_argument("--render", action="store_true", default=None, help="Animate the collapse in a pygame window")
    parser.add_argument("--fps", type=int, default=None, help="Steps per second when rendering")
    parser.add_argument("--max-steps", type=int, default=None, help="Stop after this many steps")
    parser.add_argument("--output", type=str, default=None, help="Write the output image to this file")
    parser.add_argument("--scale", type=int, default=1, help="Upscaling factor for the saved output image")
    parser.add_argument("--atlas", type=str, default=None, help="Write an image of all extracted tiles to this file")
    parser.add_argument("--save-config", type=str, default=None, help="Write the effective settings to this YAML file")
    parser.add_argument("--verbose", action="store_true", help="Log every contradiction")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.ERROR,
        format="%(levelname)s %(name)s: %(message)s",
    )

    config = load_config(args.config) if args.config else RunConfig()
    config = config.with_overrides(
        sample=args.sample,
        output_width=args.width,
        output_height=args.height,
        seed=args.seed,
        scan_order=args.scan_order,
        render=args.render,
        fps=args.fps,
        max_steps=args.max_steps,
        output=args.output,
    )
    if args.save_config:
        save_config(config, args.save_config)
        print(f"Saved settings to {args.save_config}")

    sample = config.build_sample()
    pool = extract_tiles(sample, order=config.scan_order)
    print(f"Sample: {sample.width}x{sample.height}, {len(sample.palette)} colors, {len(pool)} tiles")

    if args.atlas:
        save_output(tile_atlas(pool), args.atlas, scale=args.scale)
        print(f"Saved tile atlas to {args.atlas}")

    engine = CollapseEngine(
        pool,
        config.output_width,
        config.output_height,
        rng=config.seed,
        placeholder=config.placeholder,
    )

    start_time = time.time()
    if config.render:
        run_rendered(engine, sample, config)
    else:
        run_headless(engine, config.max_steps)
    end_time = time.time()

    state = "completed" if engine.done else "stopped"
    print(f"WFC {state} after {engine.steps} steps in {end_time - start_time:.2f} seconds")
    print(f"Contradictions: {len(engine.contradictions)}")

    if config.output:
        save_output(engine.output, config.output, scale=args.scale)
        print(f"Saved output to {config.output}")

    return engine


if __name__ == "__main__":
    main()
