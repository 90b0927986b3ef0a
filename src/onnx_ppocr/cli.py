"""
Command Line Interface for the PP-OCR pipeline
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List

import cv2

from .config import PipelineConfig
from .errors import ConfigurationError, StageInferenceError
from .models import registry
from .pipeline import PPOCR
from .timing import format_summary
from .utils import draw_ocr_boxes

IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".bmp", ".tif", ".tiff", ".webp"}


def collect_images(inputs: List[str]) -> List[Path]:
    """Expand files and directories into a sorted list of image paths."""
    paths = []
    for item in inputs:
        path = Path(item)
        if path.is_dir():
            paths.extend(
                sorted(p for p in path.iterdir() if p.suffix.lower() in IMAGE_SUFFIXES)
            )
        else:
            paths.append(path)
    return paths


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Detect, orient and recognize text in images",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Full pipeline on one image
  onnx-ppocr page.png

  # Every image in a directory, with angle classification and timings
  onnx-ppocr scans/ --cls --benchmark

  # Detection only, saving annotated copies
  onnx-ppocr page.png --no-rec --visualize out/

  # Check which default models are already downloaded
  onnx-ppocr --model-status
        """
    )

    parser.add_argument('inputs', nargs='*', help='Image files or directories')

    # Stages
    parser.add_argument('--no-det', action='store_true', help='Treat each image as one text line')
    parser.add_argument('--no-rec', action='store_true', help='Skip text recognition')
    parser.add_argument('--cls', action='store_true', help='Enable angle classification')

    # Models
    parser.add_argument('--det-model', default=None, help='Detection model (default: downloaded)')
    parser.add_argument('--rec-model', default=None, help='Recognition model (default: downloaded)')
    parser.add_argument('--cls-model', default=None, help='Classification model (default: downloaded)')
    parser.add_argument('--char-dict', default=None, help='Character dictionary (default: downloaded)')

    # Runtime
    parser.add_argument('--use-gpu', action='store_true', help='Use CUDA if available')
    parser.add_argument('--cpu-threads', type=int, default=10, help='CPU inference threads (default: 10)')
    parser.add_argument('--no-mkldnn', action='store_true', help='Disable the oneDNN CPU provider')

    # Output
    parser.add_argument('--benchmark', action='store_true', help='Print average stage timings')
    parser.add_argument('--model-status', action='store_true', help='Show which default models are cached and exit')
    parser.add_argument('--visualize', default=None, metavar='DIR', help='Write annotated images to DIR')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose output')

    return parser


def main(argv=None):
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.model_status:
        print(registry.status())
        return 0
    if not args.inputs:
        parser.error("at least one image or directory is required")

    config = PipelineConfig(
        det_model_path=args.det_model,
        rec_model_path=args.rec_model,
        cls_model_path=args.cls_model,
        rec_char_dict_path=args.char_dict,
        use_gpu=args.use_gpu,
        cpu_threads=args.cpu_threads,
        enable_mkldnn=not args.no_mkldnn,
        det=not args.no_det,
        rec=not args.no_rec,
        cls=args.cls,
    )

    try:
        ocr = PPOCR(config)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    vis_dir = Path(args.visualize) if args.visualize else None
    if vis_dir is not None:
        vis_dir.mkdir(parents=True, exist_ok=True)

    processed = 0
    failed = 0
    try:
        for path in collect_images(args.inputs):
            img = cv2.imread(str(path))
            if img is None:
                print(f"Couldn't read image: {path}", file=sys.stderr)
                continue

            print(f"predict img: {path}")
            processed += 1
            try:
                results = ocr.ocr(img, det=config.det, rec=config.rec, cls=config.cls)
            except StageInferenceError as e:
                failed += 1
                print(f"OCR failed for {path} ({e.stage or 'unknown'} stage): {e}", file=sys.stderr)
                continue

            for idx, result in enumerate(results):
                print(f"{idx}\t{result}")

            if vis_dir is not None:
                annotated = draw_ocr_boxes(
                    img,
                    [r.box for r in results],
                    texts=[r.text for r in results] if config.rec else None,
                    scores=[r.score for r in results] if config.rec else None,
                    drop_score=config.recognizer.drop_score,
                )
                out_path = vis_dir / f"ocr_vis_{path.name}"
                cv2.imwrite(str(out_path), annotated)
                print(f"The visualized image saved in {out_path}")

    except KeyboardInterrupt:
        print("\n\nInterrupted by user", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"\nError: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1

    if args.benchmark and processed:
        # benchmark_log writes the table to the log, which is only shown with -v
        if args.verbose:
            ocr.benchmark_log(processed)
        else:
            print(format_summary(ocr.timer.summary(processed), processed))

    return 1 if failed else 0


if __name__ == '__main__':
    sys.exit(main())
