from erfinder.cli import parse_args


def test_parse_args_defaults():
    args = parse_args(["search", "--lat", "37.5", "--lon", "127.0"])
    assert args.command == "search"
    assert args.lat == 37.5
    assert args.sort == "RECOMMENDED"
    assert args.load_more == 0
    assert args.overlay_config_dir is None
    assert args.ct is False


def test_parse_args_accepts_filters_and_sort():
    args = parse_args(["search", "--lat", "37.5", "--lon", "127.0", "--sort", "BEDS", "--mri", "--within-10km"])
    assert args.sort == "BEDS"
    assert args.mri is True
    assert args.within_10km is True


def test_parse_args_accepts_overlay_config_dir():
    args = parse_args(["snapshot-status", "--overlay-config-dir", "config/live"])
    assert args.overlay_config_dir == "config/live"
