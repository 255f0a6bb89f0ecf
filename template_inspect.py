import argparse
import json
from pathlib import Path

import fitz


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="List text spans of a template (or a stamped document) with bottom-left coordinates."
    )
    parser.add_argument("--template", required=True, help="Path to the PDF.")
    parser.add_argument("--page", type=int, default=0, help="Zero-based page index.")
    parser.add_argument(
        "--contains",
        help="Filter spans containing this text (case-insensitive).",
    )
    parser.add_argument(
        "--min-len",
        type=int,
        default=1,
        help="Minimum text length to include.",
    )
    parser.add_argument(
        "--output-json",
        help="Write the spans as a field map skeleton to this JSON path.",
    )
    return parser.parse_args()


def to_bottom_left_bbox(bbox: list[float], page_h: float) -> list[float]:
    x0, y0, x1, y1 = bbox
    return [x0, page_h - y1, x1, page_h - y0]


def iter_spans(page: fitz.Page):
    data = page.get_text("dict")
    for block in data.get("blocks", []):
        if block.get("type") != 0:
            continue
        for line in block.get("lines", []):
            for span in line.get("spans", []):
                yield span


def extract_spans(
    pdf_bytes: bytes,
    page_index: int = 0,
    contains: str | None = None,
    min_len: int = 1,
) -> list[dict]:
    """Text spans on one page, with PDF (bottom-left origin) coordinates.

    ``origin`` is the baseline start point, i.e. the x/y a FieldSpec would use
    to draw the same text.
    """
    needle = contains.lower() if contains else None
    with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
        if page_index < 0 or page_index >= len(doc):
            raise IndexError(f"Page {page_index} out of range. PDF has {len(doc)} page(s).")
        page = doc[page_index]
        page_h = float(page.rect.height)

        spans: list[dict] = []
        for span in iter_spans(page):
            text = (span.get("text") or "").strip()
            if len(text) < min_len:
                continue
            if needle and needle not in text.lower():
                continue
            origin = span.get("origin") or (span["bbox"][0], span["bbox"][3])
            spans.append(
                {
                    "text": text,
                    "font": span.get("font"),
                    "size": span.get("size"),
                    "origin": [origin[0], page_h - origin[1]],
                    "bbox": to_bottom_left_bbox(list(span.get("bbox", [0, 0, 0, 0])), page_h),
                }
            )
    return spans


def extract_words(pdf_bytes: bytes, page_index: int = 0) -> list[dict]:
    """Individual words on one page with bottom-left bounding boxes."""
    with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
        page = doc[page_index]
        page_h = float(page.rect.height)
        return [
            {"text": word[4], "bbox": to_bottom_left_bbox(list(word[:4]), page_h)}
            for word in page.get_text("words")
        ]


def page_count(pdf_bytes: bytes) -> int:
    with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
        return len(doc)


def main() -> None:
    args = parse_args()
    template_path = Path(args.template)
    spans = extract_spans(template_path.read_bytes(), args.page, args.contains, args.min_len)

    print(f"Template: {template_path}")
    print(f"Page: {args.page}  Matches: {len(spans)}")
    for idx, span in enumerate(spans, start=1):
        x, y = span["origin"]
        print(f"{idx:03d} | '{span['text']}' | font={span['font']} size={span['size']:.1f} | origin=({x:.2f},{y:.2f})")

    if args.output_json:
        output_path = Path(args.output_json)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        skeleton = {
            "fields": [
                {
                    "name": span["text"],
                    "page": args.page,
                    "x": round(span["origin"][0], 2),
                    "y": round(span["origin"][1], 2),
                    "size": round(float(span["size"]), 1),
                }
                for span in spans
            ]
        }
        output_path.write_text(json.dumps(skeleton, indent=2), encoding="utf-8")
        print(f"Wrote JSON: {output_path}")


if __name__ == "__main__":
    main()
