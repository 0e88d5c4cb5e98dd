"""
tga.py
"""
import logging
from pathlib import Path

from PIL import Image

# Uncompressed true-color image, no id field, no color map, origin (0, 0).
TGA_PREAMBLE = bytes((0, 0, 2, 0, 0, 0, 0, 0, 0, 0, 0, 0))
BITS_PER_PIXEL = 24
MAX_DIMENSION = 0xFFFF


def tga_header(width, height):
    """
    Returns the 18 header bytes of a width x height, 24 bits per pixel TGA file.
    Dimensions are stored low byte first.
    """
    for name, value in (('width', width), ('height', height)):
        if not 0 < value <= MAX_DIMENSION:
            raise ValueError(f'{name} {value} does not fit a TGA header')

    return TGA_PREAMBLE + bytes((
        width % 256, width // 256,
        height % 256, height // 256,
        BITS_PER_PIXEL, 0
    ))


def tga_write(width, height, rgb, filename):
    """
    Writes a TGA graphics file of the BGR pixel data and returns its Path.

    The data goes to a sibling '.part' file first, which replaces filename only
    once everything has been written. On failure the '.part' file is removed and
    the error propagates.
    """
    if len(rgb) != width * height * 3:
        raise ValueError(f'pixel data holds {len(rgb)} bytes, expected {width * height * 3}')

    output_path = Path(filename)
    part_path = output_path.with_name(output_path.name + '.part')
    header = tga_header(width, height)

    try:
        with open(part_path, 'wb') as file_unit:
            file_unit.write(header)
            file_unit.write(rgb)
        part_path.replace(output_path)
    except OSError:
        part_path.unlink(missing_ok=True)
        raise

    logging.info("Graphics data saved as '%s'", output_path)
    return output_path


def to_image(width, height, rgb):
    """
    Converts BGR pixel data to a Pillow RGB image. Row 0 of the data is the
    bottom of the picture, as in a TGA file with origin (0, 0).
    """
    image = Image.frombytes('RGB', (width, height), bytes(rgb), 'raw', 'BGR')
    return image.transpose(Image.Transpose.FLIP_TOP_BOTTOM)
