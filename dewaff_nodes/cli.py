"""
Command line interface for the Deceived Weighted Average Filters

Examples:
    dewaff -i noisy.png                      # Deceived Guided Filter -> noisy_DGF.png
    dewaff -i noisy.png -f DBF -w 11         # Deceived Bilateral Filter, 11x11 window
    dewaff -v clip.mp4 -f DNLM --patch-size 5
    dewaff -i noisy.png -b 10                # run a 10 iteration benchmark
"""

import argparse
import logging
import sys
from typing import List, Optional

from .scripts.config import DeWAFFConfig, FILTER_TYPES
from .scripts.frame_processor import FrameProcessor, Timer
from .scripts.validation import InvalidParameterError, InputMismatchError

logger = logging.getLogger("dewaff_nodes.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='dewaff',
        description='Deceived Weighted Average Filters for edge preserving image and video denoising'
    )

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument('-i', '--image', type=str,
                        help='Process an image given a file name')
    source.add_argument('-v', '--video', type=str,
                        help='Process a video given a file name')

    parser.add_argument('-b', '--benchmark', type=int, metavar='N', default=None,
                        help='Run a series of N benchmarks for a video or an image')
    parser.add_argument('-f', '--filter', type=str.upper, choices=sorted(FILTER_TYPES), default='DGF',
                        help='Filter type (default: DGF)')
    parser.add_argument('-w', '--window-size', type=int, default=15,
                        help='Odd processing window size >= 3 (default: 15)')
    parser.add_argument('--spatial-sigma', type=float, default=None,
                        help='Spatial standard deviation (default: window size / 1.5)')
    parser.add_argument('--range-sigma', type=float, default=10.0,
                        help='Range standard deviation on the CIELab scale (default: 10)')
    parser.add_argument('--patch-size', type=int, default=3,
                        help='Odd patch size for DNLM, <= window size (default: 3)')
    parser.add_argument('--lambda', dest='usm_lambda', type=float, default=2.0,
                        help='Unsharp mask strength (default: 2)')
    parser.add_argument('--workers', type=int, default=None,
                        help='Worker threads for the pixel loop (default: cpu count)')
    parser.add_argument('-o', '--output', type=str, default=None,
                        help='Output file (default: <input>_<FILTER>.png / .avi)')
    parser.add_argument('--verbose', action='store_true',
                        help='Debug logging (-v is taken by --video)')
    return parser


def config_from_args(args: argparse.Namespace) -> DeWAFFConfig:
    return DeWAFFConfig(
        filter_type=args.filter,
        window_size=args.window_size,
        spatial_sigma=args.spatial_sigma,
        range_sigma=args.range_sigma,
        patch_size=args.patch_size,
        usm_lambda=args.usm_lambda,
        workers=args.workers,
    ).validate()


def print_benchmark(elapsed: List[float]):
    divider = '-' * 29
    print("\nBenchmark mode")
    print(divider)
    print(f"| {'N':<4} | {'Time [s]':<18} |")
    print(divider)
    for i, seconds in enumerate(elapsed, start=1):
        print(f"| {i:<4} | {seconds:<18.6f} |")
    print(divider)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.benchmark is not None and args.benchmark < 1:
        parser.error("The number of benchmark iterations [N] needs to be 1 or greater")

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(level=level, format='%(levelname)s %(name)s: %(message)s')

    try:
        processor = FrameProcessor(config_from_args(args), channel_order='BGR')

        if args.benchmark:
            timer = Timer()
            if args.image:
                elapsed = processor.benchmark_image(args.image, args.benchmark, timer)
            else:
                elapsed = processor.benchmark_video(args.video, args.benchmark, timer)
            print_benchmark(elapsed)
        elif args.image:
            processor.process_image_file(args.image, args.output)
        else:
            processor.process_video_file(args.video, args.output)

    except (InvalidParameterError, InputMismatchError, OSError) as e:
        logger.error(str(e))
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
