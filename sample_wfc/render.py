import math
from typing import Optional, Tuple, Union

import numpy as np
import pygame
from PIL import Image

from .tiles import TILE_SIZE, TilePool
from .wfc import OutputBuffer


class WFCRenderer:
    """
    Pygame renderer for the collapse engine.
    Shows the sample on the left and the output being generated on the right.
    """

    def __init__(self,
                 sample_shape: Tuple[int, int],
                 output_shape: Tuple[int, int],
                 pixel_size: int = 12,
                 margin: int = 16,
                 background_color: Tuple[int, int, int] = (40, 40, 40)):
        """
        Initialize the renderer.

        Args:
            sample_shape: (width, height) of the sample in pixels
            output_shape: (width, height) of the output grid in cells
            pixel_size: Size of one sample pixel / output cell on screen
            margin: Space around and between the two images
            background_color: RGB color for the background
        """
        # Initialize Pygame if not already initialized
        if not pygame.get_init():
            pygame.init()

        self.pixel_size = pixel_size
        self.margin = margin
        self.background_color = background_color

        sample_w, sample_h = sample_shape
        output_w, output_h = output_shape
        self.sample_origin = (margin, margin)
        self.output_origin = (2 * margin + sample_w * pixel_size, margin)
        self.screen_width = 3 * margin + (sample_w + output_w) * pixel_size
        self.screen_height = 2 * margin + max(sample_h, output_h) * pixel_size

        self.screen = pygame.display.set_mode((self.screen_width, self.screen_height))
        pygame.display.set_caption("Wave Function Collapse")

        self.font = pygame.font.SysFont(None, max(pixel_size, 10))

    def _to_surface(self, rgba: np.ndarray) -> pygame.Surface:
        """Scale an (height, width, 4) RGBA array up to a pygame surface"""
        height, width = rgba.shape[:2]
        # surfarray is indexed [x, y]
        surface = pygame.surfarray.make_surface(np.ascontiguousarray(rgba[:, :, :3].swapaxes(0, 1)))
        return pygame.transform.scale(surface, (width * self.pixel_size, height * self.pixel_size))

    def render(self, sample_rgba: np.ndarray, output_rgba: np.ndarray,
               entropy: Optional[np.ndarray] = None) -> pygame.Surface:
        """
        Render the sample and the current output snapshot.

        Args:
            sample_rgba: Sample pixels, shape (height, width, 4)
            output_rgba: Engine snapshot, shape (height, width, 4)
            entropy: Optional candidate counts; drawn on cells with more than one candidate

        Returns:
            The Pygame surface that was rendered to
        """
        self.screen.fill(self.background_color)
        self.screen.blit(self._to_surface(sample_rgba), self.sample_origin)
        self.screen.blit(self._to_surface(output_rgba), self.output_origin)

        if entropy is not None:
            ox, oy = self.output_origin
            for y, x in np.argwhere(entropy > 1):
                text = self.font.render(str(int(entropy[y, x])), True, (255, 255, 255))
                text_rect = text.get_rect(center=(
                    ox + x * self.pixel_size + self.pixel_size // 2,
                    oy + y * self.pixel_size + self.pixel_size // 2,
                ))
                self.screen.blit(text, text_rect)

        pygame.display.flip()
        return self.screen

    def handle_events(self) -> bool:
        """
        Handle Pygame events.

        Returns:
            bool: True if the window should close, False otherwise
        """
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                return True
            if event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    return True
        return False

    def save_render(self, filename: str) -> None:
        pygame.image.save(self.screen, filename)

    def close(self):
        """Close the renderer"""
        pygame.quit()


def tile_atlas(pool: TilePool, columns: Optional[int] = None) -> np.ndarray:
    """
    Lay every tile of the pool out on one transparent image, one pixel apart.

    Args:
        pool: Tiles to draw, in index order (left to right, top to bottom)
        columns: Tiles per row, defaults to a square-ish layout

    Returns:
        np.ndarray: uint8 RGBA image of shape (rows * 4 - 1, columns * 4 - 1, 4)
    """
    count = len(pool)
    if columns is None:
        columns = max(1, math.ceil(math.sqrt(count)))
    rows = max(1, math.ceil(count / columns))
    step = TILE_SIZE + 1

    palette = np.array(pool.palette, dtype=np.uint8)
    atlas = np.zeros((rows * step - 1, columns * step - 1, 4), dtype=np.uint8)
    for index in range(count):
        left = step * (index % columns)
        top = step * (index // columns)
        atlas[top:top + TILE_SIZE, left:left + TILE_SIZE] = palette[pool.pixels[index]]
    return atlas


def save_output(image: Union[OutputBuffer, np.ndarray], filename: str, scale: int = 1) -> str:
    """
    Write an output buffer (or any RGBA array) to an image file with Pillow.

    Args:
        image: OutputBuffer or uint8 array of shape (height, width, 4)
        filename: Destination, format taken from the extension
        scale: Integer upscaling factor (nearest neighbor)

    Returns:
        str: the filename written
    """
    rgba = image.to_array() if isinstance(image, OutputBuffer) else np.asarray(image, dtype=np.uint8)
    picture = Image.fromarray(rgba)
    if scale > 1:
        picture = picture.resize((picture.width * scale, picture.height * scale), Image.Resampling.NEAREST)
    picture.save(filename)
    return filename
