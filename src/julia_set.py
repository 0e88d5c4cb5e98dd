"""
julia_set.py
"""
import argparse
import datetime
import logging
import multiprocessing
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path

from src.tga import tga_write, to_image

CR = -0.8
CI = 0.156
MAX_ITERATIONS = 200
ESCAPE_THRESHOLD = 1000

# (blue, green, red)
IN_SET_BGR = bytes((0, 0, 255))
ESCAPED_BGR = bytes((255, 255, 255))

SIZE = 20
WIDTH = 1000 * SIZE
HEIGHT = 1000 * SIZE
XL = -1.5
XR = 1.5
YB = -1.5
YT = 1.5

TGA_FILE = 'julia_set.tga'


@dataclass(frozen=True)
class Domain:
    """
    Rectangle [xl, xr] x [yb, yt] of the complex plane sampled by a width x height grid.
    """
    width: int
    height: int
    xl: float = XL
    xr: float = XR
    yb: float = YB
    yt: float = YT

    def __post_init__(self):
        if self.width < 2 or self.height < 2:
            raise ValueError(f'grid must be at least 2x2, got {self.width}x{self.height}')
        if not self.xl < self.xr:
            raise ValueError(f'left bound {self.xl} must be less than right bound {self.xr}')
        if not self.yb < self.yt:
            raise ValueError(f'bottom bound {self.yb} must be less than top bound {self.yt}')

    @property
    def rgb_size(self):
        """
        Number of bytes in the color buffer for this grid.
        """
        return self.width * self.height * 3


class Julia:
    """
    Renders the Julia set of z -> z**2 + (-0.8 + 0.156i) to a TGA file.
    """

    @staticmethod
    def main(argv=None):
        """
        Configures logging, parses the command line and renders the image.
        Returns the process exit status.
        """
        logging.basicConfig(level=logging.INFO, format='%(message)s')
        args = _parse_args(argv)

        try:
            domain = Domain(args.width, args.height, args.xl, args.xr, args.yb, args.yt)
            Julia.render(domain, args.output, workers=args.workers, preview=args.preview)
        except (MemoryError, OSError, ValueError) as e:
            logging.error("Error rendering %s: %s", args.output, e)
            return 1
        return 0

    @staticmethod
    def render(domain, output=TGA_FILE, workers=None, preview=None):
        """
        Computes the color buffer for the domain, writes it to output and, when a
        preview path is given, also saves it through Pillow. Returns the Path written.
        """
        start = datetime.datetime.now().timestamp()
        logging.info('Plot a version of the Julia set for Z(k+1)=Z(k)^2%+g%+gi', CR, CI)
        logging.info('Grid of %dx%d pixels over [%g, %g]x[%g, %g]',
                     domain.width, domain.height, domain.xl, domain.xr, domain.yb, domain.yt)

        rgb = julia_rgb(domain, workers=workers)
        output_path = tga_write(domain.width, domain.height, rgb, output)

        if preview is not None:
            to_image(domain.width, domain.height, rgb).save(preview)
            logging.info("Preview saved as '%s'", preview)

        logging.info('The time was %.3f seconds', datetime.datetime.now().timestamp() - start)
        return output_path


def _parse_args(argv):
    """
    Parses the command line. Defaults render the full 20000x20000 plot.
    """
    parser = argparse.ArgumentParser(description='Plot the Julia set for z -> z**2 - 0.8 + 0.156i.')
    parser.add_argument('--width', type=int, default=WIDTH, help='image width in pixels')
    parser.add_argument('--height', type=int, default=HEIGHT, help='image height in pixels')
    parser.add_argument('--xl', type=float, default=XL, help='left limit of the real axis')
    parser.add_argument('--xr', type=float, default=XR, help='right limit of the real axis')
    parser.add_argument('--yb', type=float, default=YB, help='bottom limit of the imaginary axis')
    parser.add_argument('--yt', type=float, default=YT, help='top limit of the imaginary axis')
    parser.add_argument('-o', '--output', type=Path, default=Path(TGA_FILE), help='TGA file to write')
    parser.add_argument('--workers', type=int, default=None, help='worker processes (default: CPU count)')
    parser.add_argument('--preview', type=Path, default=None, help='also save the image in a Pillow format')
    return parser.parse_args(argv)


def map_coordinate(n, low, high, k):
    """
    Maps index k of an axis with n samples linearly onto [low, high].
    Index 0 gives low and index n - 1 gives high exactly.
    """
    return ((n - 1 - k) * low + k * high) / (n - 1)


def escape_time(x, y):
    """
    Iterates A -> A * A + C from A = x + yi.
    Returns the iteration (1-based) at which ||A||^2 first exceeds the escape
    threshold, or None if A stays bounded for MAX_ITERATIONS steps.
    """
    ar = x
    ai = y
    for k in range(1, MAX_ITERATIONS + 1):
        ar, ai = ar * ar - ai * ai + CR, 2 * ar * ai + CI
        if ar * ar + ai * ai > ESCAPE_THRESHOLD:
            return k
    return None


def julia_point(x, y):
    """
    True if x + yi is in the Julia set.
    """
    return escape_time(x, y) is None


def julia_pixel(domain, i, j):
    """
    True if pixel (i, j) of the domain's grid is in the Julia set.
    """
    x = map_coordinate(domain.width, domain.xl, domain.xr, i)
    y = map_coordinate(domain.height, domain.yb, domain.yt, j)
    return julia_point(x, y)


def allocate_rgb(width, height):
    """
    Allocates a zeroed color buffer of width * height BGR triplets.
    """
    return bytearray(width * height * 3)


def julia_rgb(domain, rgb=None, workers=None):
    """
    Applies julia_pixel to each point in the domain and fills rgb with the
    (blue, green, red) values of the plot, pixel (i, j) at offset (j * width + i) * 3.

    Rows are independent tasks handed out to a process pool, so workers that get
    cheap rows (points escaping quickly) move on to the next row straight away.
    """
    if rgb is None:
        rgb = allocate_rgb(domain.width, domain.height)
    elif len(rgb) != domain.rgb_size:
        raise ValueError(f'color buffer holds {len(rgb)} bytes, expected {domain.rgb_size}')

    if workers is None:
        workers = multiprocessing.cpu_count()
    elif workers < 1:
        raise ValueError(f'need at least one worker, got {workers}')

    stride = domain.width * 3
    with ProcessPoolExecutor(max_workers=workers) as executor:
        futures = {executor.submit(_julia_row, domain, j): j for j in range(domain.height)}
        try:
            for future in as_completed(futures):
                # Dropping the future releases the row once it is in the arena.
                j = futures.pop(future)
                rgb[j * stride:(j + 1) * stride] = future.result()
                logging.debug("Row %d done", j)
        except Exception:
            executor.shutdown(cancel_futures=True)
            raise

    return rgb


def _julia_row(domain, j):
    """
    Computes the BGR bytes of row j.
    """
    y = map_coordinate(domain.height, domain.yb, domain.yt, j)
    row = bytearray(domain.width * 3)
    for i in range(domain.width):
        x = map_coordinate(domain.width, domain.xl, domain.xr, i)
        k = i * 3
        row[k:k + 3] = IN_SET_BGR if julia_point(x, y) else ESCAPED_BGR
    return bytes(row)


if __name__ == '__main__':
    raise SystemExit(Julia.main())
