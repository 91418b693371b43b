import argparse
import logging

import cv2

from yolo_helpers import (
    LetterboxConfig,
    NMSConfig,
    combine_mask,
    draw_detections,
    layout_from_metadata,
    load_metadata,
    load_pipeline,
    overlay_mask,
    unletterbox_mask,
)


def main() -> int:
    parser = argparse.ArgumentParser(description="Run a YOLO model on an image and print/draw the decoded results.")
    parser.add_argument("--image", required=True, help="Path to an input image.")
    parser.add_argument("--model", default="Models/yolov8n.onnx", help="Path to a YOLO model (.onnx/.torchscript).")
    parser.add_argument("--metadata", default="Models/metadata.yaml", help="Path to the exported metadata.yaml.")
    parser.add_argument("--task", default=None, help="Override task: detect / pose / segment / classify.")
    parser.add_argument("--mask-channels", type=int, default=32, help="Prototype mask channels (segment only).")
    parser.add_argument("--imgsz", type=int, default=640, help="Letterbox input size (e.g., 640).")
    parser.add_argument("--max-output-size", type=int, default=100, help="Boxes kept by NMS (0 = no NMS, keep all).")
    parser.add_argument("--iou", type=float, default=0.5, help="IoU threshold for NMS.")
    parser.add_argument("--score", type=float, default=0.25, help="Score threshold for NMS.")
    parser.add_argument("--backend", default=None, help="Force backend: onnxruntime / torchscript.")
    parser.add_argument(
        "--onnx-providers",
        default=None,
        help='Comma-separated ORT providers, e.g. "CUDAExecutionProvider,CPUExecutionProvider".',
    )
    parser.add_argument("--out", default=None, help="Optional output image path for the visualization.")
    parser.add_argument("--show", action="store_true", help="Show a window with the visualization.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    if args.imgsz < 32:
        raise ValueError("--imgsz must be >= 32")
    if args.max_output_size < 0:
        raise ValueError("--max-output-size must be >= 0")

    meta = load_metadata(args.metadata)
    layout = layout_from_metadata(meta, task=args.task, num_mask_channels=args.mask_channels)

    onnx_providers = None
    if args.onnx_providers:
        onnx_providers = [p.strip() for p in str(args.onnx_providers).split(",") if p.strip()]

    pipeline = load_pipeline(
        model_path=args.model,
        layout=layout,
        backend=args.backend,
        letterbox_cfg=LetterboxConfig(new_shape=(int(args.imgsz), int(args.imgsz))),
        nms_cfg=NMSConfig(max_output_size=args.max_output_size, iou_threshold=args.iou, score_threshold=args.score),
        onnx_providers=onnx_providers,
    )

    img = cv2.imread(args.image)
    if img is None:
        raise FileNotFoundError(f"Could not read image at path: {args.image}")

    out = pipeline(img)
    names = meta.class_names

    if layout.task == "classify":
        for res in out.result:
            print(names.get(res.class_index, str(res.class_index)), f"{res.confidence:.3f}")
        return 0

    boxes = out.boxes_in_image()
    for box in boxes:
        print(names.get(box.class_index, str(box.class_index)), f"{box.confidence:.3f}", box.as_xyxy())

    vis = img
    if layout.task == "segment" and out.result:
        batch = out.result[0]
        # boxes_in_image keeps the decoder's order, so each model-space mask pairs with its mapped box.
        for model_box, image_box in zip(batch.bounding_boxes, boxes):
            mask = combine_mask(model_box, batch.masks)
            vis = overlay_mask(vis, unletterbox_mask(mask, out.preprocess), box=image_box)
    vis = draw_detections(vis, boxes, class_names=names, show_score=True)

    if args.out:
        ok = cv2.imwrite(args.out, vis)
        if not ok:
            raise RuntimeError(f"Failed to write output image: {args.out}")

    if args.show:
        cv2.imshow("detections", vis)
        cv2.waitKey(0)
        cv2.destroyAllWindows()

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
