from .geometry import InvalidInput, Rect, Resolution


def map_to_screen(screen: Resolution, preview: Resolution, raw: Rect) -> Rect:
    """
    Rescale a preview-space rectangle into screen space.

    Each axis is scaled on its own, so a preview whose aspect ratio differs
    from the screen yields a stretched rectangle. Edges are truncated
    toward zero.

    Raises:
        InvalidInput: if the preview resolution has a zero dimension
    """
    if preview.width == 0 or preview.height == 0:
        raise InvalidInput(
            f"Preview resolution {preview.width}x{preview.height} has a zero dimension"
        )
    ratio_w = screen.width / preview.width
    ratio_h = screen.height / preview.height
    return Rect(
        int(raw.left * ratio_w),
        int(raw.top * ratio_h),
        int(raw.right * ratio_w),
        int(raw.bottom * ratio_h),
    )
