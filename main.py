import argparse
import os
from pathlib import Path

import cv2
import numpy as np
from tqdm import tqdm

from facecontour.config import load_and_merge
from facecontour.errors import FeatureUnavailableError
from facecontour.loader import ImageLoader
from facecontour.pipeline import FacePipeline
from facecontour.services import ModelServices
from facecontour.types import ImageMeta
from facecontour.utils import setup_logging
from facecontour.writers import ResultsWriter, build_entry


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Face and body contour detection")
    # Single-image mode
    p.add_argument("--image", help="Path to a single image (PNG/JPG)")
    p.add_argument("--save-debug", default=None, help="Optional path to save a contour overlay (single-image mode)")
    # Batch mode
    p.add_argument("--input-dir", help="Directory of images to process (batch mode)")
    p.add_argument("--output-dir", help="Directory to write outputs (JSON + summary)")
    p.add_argument("--max-files", type=int, default=None, help="Optional max files to process (for testing)")
    p.add_argument("--workers", type=int, default=None, help="Threads for concurrent analysis stages (0=inline)")
    p.add_argument("--detector-model", default=None, help="Path to the object detector .tflite model")
    # Config
    p.add_argument("--config", default=None, help="Optional YAML config path")
    p.add_argument("--log-level", default=None, help="Override log level (e.g., INFO, WARNING)")
    return p.parse_args()


_COLORS = {
    "body": (255, 255, 0),
    "hair": (255, 0, 255),
    "contour": (0, 255, 0),
    "nose": (0, 200, 255),
    "mouth": (0, 0, 255),
}
_PAIRED_COLORS = {
    "eyes": (255, 0, 0),
    "eyebrows": (0, 128, 255),
    "eyebags": (128, 0, 255),
    "iris": (0, 255, 255),
}


def _polyline(vis, pts, color, closed):
    if len(pts) == 0:
        return
    arr = np.round(np.asarray(pts)[:, :2]).astype(np.int32).reshape(-1, 1, 2)
    cv2.polylines(vis, [arr], closed, color, 1, cv2.LINE_AA)


def draw_debug(image_rgba, records, out_path: str):
    vis = cv2.cvtColor(image_rgba, cv2.COLOR_RGBA2BGR)
    for rec in records:
        x, y, w, h = (int(round(v)) for v in rec.bbox().to_list())
        cv2.rectangle(vis, (x, y), (x + w, y + h), (0, 0, 255), 2)
        for name, color in _COLORS.items():
            try:
                _polyline(vis, getattr(rec, name)(), color, closed=name != "mouth")
            except FeatureUnavailableError:
                continue
        for name, color in _PAIRED_COLORS.items():
            try:
                pair = getattr(rec, name)()
            except FeatureUnavailableError:
                continue
            _polyline(vis, pair.left, color, closed=name != "eyebags")
            _polyline(vis, pair.right, color, closed=name != "eyebags")
    cv2.imwrite(out_path, vis)


def main():
    # Reduce TF/MediaPipe verbosity if desired
    os.environ.setdefault("TF_CPP_MIN_LOG_LEVEL", "2")

    args = parse_args()

    # Build CLI overrides for config merging
    cli_overrides = {"paths": {}, "runtime": {}, "detection": {}}
    if args.input_dir:
        cli_overrides["paths"]["input_dir"] = args.input_dir
    if args.output_dir:
        cli_overrides["paths"]["output_dir"] = args.output_dir
    if args.max_files is not None:
        cli_overrides["runtime"]["max_files"] = args.max_files
    if args.workers is not None:
        cli_overrides["runtime"]["workers"] = args.workers
    if args.log_level:
        cli_overrides["runtime"]["log_level"] = args.log_level
    if args.detector_model:
        cli_overrides["detection"]["model_path"] = args.detector_model

    cfg = load_and_merge(args.config, cli_overrides)

    setup_logging(cfg.get("runtime", {}).get("log_level", "INFO"))

    with ModelServices(cfg) as services, FacePipeline(services, cfg) as pipeline:
        # Single-image mode
        if args.image and not args.input_dir:
            loader = ImageLoader(input_dir=Path(args.image).parent)
            image, meta, err = loader.read_image(args.image)
            if err or image is None or meta is None:
                raise SystemExit(f"Failed to read image: {args.image} ({err})")

            records = pipeline.detect_faces(image)
            if not records:
                print("No person detected")
                return

            for i, rec in enumerate(records):
                print(f"Person {i}: bbox={rec.bbox().to_list()} state={rec.state.value}")
                for name in ("contour", "body", "eyes", "nose", "mouth", "eyebrows", "eyebags", "iris", "hair"):
                    slot = rec.slot(name)
                    print(f"  {name:<9} {slot.status.value}" + (f" ({slot.reason})" if slot.reason else ""))
                try:
                    angle = rec.face_angle()
                    print("  angles (deg): roll=%.2f pitch=%.2f yaw=%.2f" % (angle.roll, angle.pitch, angle.yaw))
                except FeatureUnavailableError as e:
                    print("  angles unavailable:", e)

            if args.save_debug:
                out_path = str(args.save_debug)
                draw_debug(image, records, out_path)
                print("Saved debug overlay:", out_path)
            return

        # Batch mode
        input_dir = cfg.get("paths", {}).get("input_dir")
        output_dir = cfg.get("paths", {}).get("output_dir")
        if not input_dir or not output_dir:
            raise SystemExit("Batch mode requires --input-dir and --output-dir (or set in config)")

        loader = ImageLoader(input_dir=input_dir, max_files=cfg.get("runtime", {}).get("max_files"))
        paths = list(loader.enumerate())
        if not paths:
            print("No images found in", input_dir)
            return

        writer = ResultsWriter(output_dir, cfg)
        for p in tqdm(paths, desc="Processing", unit="img"):
            image, meta, err = loader.read_image(p)
            if err or image is None or meta is None:
                writer.add(build_entry(ImageMeta(path=str(p), width=0, height=0), [], error=err or "unreadable"))
                continue
            writer.add(build_entry(meta, pipeline.detect_faces(image)))

        summary = writer.finalize()
        print("Summary:", summary["counts"])


if __name__ == "__main__":
    main()
