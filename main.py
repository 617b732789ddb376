"""
jpegcodec
Baseline JPEG encoder/decoder - command line front end
"""

import argparse
import logging
import sys
from pathlib import Path


def run_encode(args):
    """Encode an image file (or a synthetic image) to JPEG."""
    from models.codec_params import EncoderParams
    from engines.pipeline import encode
    from utils.image_io import load_image
    from utils.test_images import generate_demo_image

    if args.synthetic:
        image = generate_demo_image(args.input)
        if image is None:
            raise SystemExit(f"Unknown synthetic image: {args.input}")
    else:
        image = load_image(args.input, grayscale=args.grayscale)

    params = EncoderParams(
        quality=args.quality,
        subsampling_mode=args.subsampling,
        dct_method=args.dct,
        use_prefilter=args.prefilter,
        restart_interval=args.restart_interval,
        comment=args.comment,
    )
    data = encode(image, params=params)
    Path(args.output).write_bytes(data)
    print(f"Image:   {image.shape[1]}x{image.shape[0]}")
    print(f"Quality: {params.quality}")
    print(f"Wrote:   {args.output} ({len(data)} bytes)")


def run_decode(args):
    """Decode a JPEG file and save it in a lossless format."""
    from models.codec_params import DecoderParams
    from engines.pipeline import decode
    from utils.image_io import save_image

    decoded = decode(
        Path(args.input).read_bytes(),
        DecoderParams(dct_method=args.dct, upsampling=args.upsampling),
    )
    save_image(decoded.pixels, args.output)
    print(f"Image:   {decoded.width}x{decoded.height}, {decoded.component_count} component(s)")
    print(f"Saved:   {args.output}")


def run_roundtrip(args):
    """Encode and decode, report quality metrics."""
    from models.codec_params import EncoderParams
    from engines.pipeline import compress_reconstruct
    from utils.image_io import load_image, save_image
    from utils.test_images import generate_colored_checkerboard

    if args.input is None:
        print("Generating test image...")
        image = generate_colored_checkerboard(256)
    else:
        print(f"Loading: {args.input}")
        image = load_image(args.input, grayscale=args.grayscale)

    print(f"Image: {image.shape[1]}x{image.shape[0]}")
    print(f"Quality: {args.quality}")

    params = EncoderParams(
        quality=args.quality,
        subsampling_mode=args.subsampling,
        dct_method=args.dct,
        use_prefilter=args.prefilter,
    )
    result = compress_reconstruct(image, params)

    print("\n=== Results ===")
    print(f"PSNR (Y):  {result.psnr_y:.2f} dB")
    print(f"SSIM (Y):  {result.ssim_y:.4f}")
    print(f"Size:      {result.encoded_size} bytes")
    print(f"BPP:       {result.bpp:.3f}")
    print(f"Ratio:     {result.compression_ratio:.2f}:1")
    print(f"Time:      {result.encode_time_ms + result.decode_time_ms:.2f} ms")

    if args.output:
        save_image(result.reconstructed_image, args.output)
        print(f"\nSaved: {args.output}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='jpegcodec', description='Baseline JPEG encoder/decoder')
    parser.add_argument('-v', '--verbose', action='count', default=0,
                        help='-v for progress, -vv for marker-level detail')
    sub = parser.add_subparsers(dest='command', required=True)

    def add_encoder_options(p):
        p.add_argument('-q', '--quality', type=int, default=75)
        p.add_argument('-s', '--subsampling', choices=['4:4:4', '4:2:2', '4:2:0'], default='4:2:0')
        p.add_argument('--dct', choices=['float', 'fixed'], default='float')
        p.add_argument('--prefilter', action='store_true', help='blur chroma before subsampling')
        p.add_argument('--grayscale', action='store_true', help='load input as a single channel')

    enc = sub.add_parser('encode', help='encode an image to JPEG')
    enc.add_argument('input', help='image path, or a demo image name with --synthetic')
    enc.add_argument('output')
    enc.add_argument('--synthetic', action='store_true')
    enc.add_argument('--restart-interval', type=int, default=0)
    enc.add_argument('--comment')
    add_encoder_options(enc)
    enc.set_defaults(func=run_encode)

    dec = sub.add_parser('decode', help='decode a JPEG to a lossless image format')
    dec.add_argument('input')
    dec.add_argument('output')
    dec.add_argument('--dct', choices=['float', 'fixed'], default='float')
    dec.add_argument('--upsampling', choices=['bilinear', 'nearest'], default='bilinear')
    dec.set_defaults(func=run_decode)

    rt = sub.add_parser('roundtrip', help='encode, decode and report PSNR/SSIM')
    rt.add_argument('input', nargs='?')
    rt.add_argument('-o', '--output')
    add_encoder_options(rt)
    rt.set_defaults(func=run_roundtrip)

    return parser


def main(argv=None):
    from models.errors import JPEGError

    args = build_parser().parse_args(argv)
    level = {0: logging.WARNING, 1: logging.INFO}.get(args.verbose, logging.DEBUG)
    logging.basicConfig(level=level, format='%(levelname)s %(name)s: %(message)s')

    try:
        args.func(args)
    except (JPEGError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
