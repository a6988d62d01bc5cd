import io

import pytest
from PIL import Image

from conftest import decode_size, make_image
from imaging.exceptions import RenderFailed
from imaging.processor import encode_auxiliary, render_variant


def test_no_upscaling() -> None:
    raster = render_variant(make_image(200, 100), 500, ".jpg")
    assert (raster.width, raster.height) == (200, 100)
    assert decode_size(raster.data) == (200, 100)


def test_downscale_keeps_aspect_ratio() -> None:
    raster = render_variant(make_image(2000, 1000), 500, ".jpg")
    assert (raster.width, raster.height) == (500, 250)
    assert decode_size(raster.data) == (500, 250)


def test_exif_orientation_is_applied() -> None:
    exif = Image.Exif()
    exif[0x0112] = 6  # rotate 90 CW
    source = make_image(300, 100, exif=exif)

    raster = render_variant(source, 1000, ".jpg")

    assert (raster.width, raster.height) == (100, 300)
    with Image.open(io.BytesIO(raster.data)) as img:
        assert img.getexif().get(0x0112) in (None, 1)


def test_transparency_is_flattened_to_white() -> None:
    source = make_image(40, 40, fmt="PNG", mode="RGBA", color=(0, 0, 0, 0))

    raster = render_variant(source, 100, ".png")

    assert raster.content_type == "image/png"
    with Image.open(io.BytesIO(raster.data)) as img:
        assert img.mode == "RGB"
        assert img.getpixel((20, 20)) == (255, 255, 255)


@pytest.mark.parametrize(
    ("ext", "fmt", "content_type"),
    [
        (".jpg", "JPEG", "image/jpeg"),
        (".JPEG", "JPEG", "image/jpeg"),
        (".png", "PNG", "image/png"),
        (".webp", "WEBP", "image/webp"),
        (".gif", "GIF", "image/gif"),
        (".tiff", "JPEG", "image/jpeg"),
    ],
)
def test_encoding_follows_target_extension(ext: str, fmt: str, content_type: str) -> None:
    raster = render_variant(make_image(64, 32, fmt="PNG"), 500, ext)
    assert raster.format == fmt
    assert raster.content_type == content_type
    with Image.open(io.BytesIO(raster.data)) as img:
        assert img.format == fmt


def test_malformed_source_fails() -> None:
    with pytest.raises(RenderFailed):
        render_variant(b"definitely not an image", 500, ".jpg")


@pytest.mark.parametrize("ext", [".jpg", ".png", ".webp", ".gif"])
def test_auxiliary_matches_sibling_dimensions(ext: str) -> None:
    raster = render_variant(make_image(1234, 777, fmt="PNG"), 500, ext)

    avif = encode_auxiliary(raster)

    assert avif.content_type == "image/avif"
    assert (avif.width, avif.height) == (raster.width, raster.height)
    assert decode_size(avif.data) == decode_size(raster.data)


def _striped_gif(width: int, height: int) -> bytes:
    img = Image.new("RGB", (width, height), (255, 0, 0))
    for x in range(0, width, 2):
        for y in range(height):
            img.putpixel((x, y), (0, 0, 255))
    buf = io.BytesIO()
    img.convert("P", palette=Image.ADAPTIVE, colors=2).save(buf, format="GIF")
    return buf.getvalue()


def test_palette_source_is_resampled_smoothly() -> None:
    raster = render_variant(_striped_gif(201, 10), 67, ".png")

    with Image.open(io.BytesIO(raster.data)) as img:
        colors = {color for _, color in img.convert("RGB").getcolors(maxcolors=1 << 16)}
    assert (raster.width, raster.height) == (67, 3)
    # nearest-neighbour would keep only the two source colours
    assert colors - {(255, 0, 0), (0, 0, 255)}


def test_transparent_palette_gif_is_flattened_to_white() -> None:
    img = Image.new("P", (40, 20), 0)
    img.putpalette([0, 0, 0, 255, 0, 0] + [0] * 762)
    buf = io.BytesIO()
    img.save(buf, format="GIF", transparency=0)

    raster = render_variant(buf.getvalue(), 20, ".png")

    with Image.open(io.BytesIO(raster.data)) as out:
        assert out.convert("RGB").getpixel((5, 5)) == (255, 255, 255)
