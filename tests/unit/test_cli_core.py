from dispmap.cli import parse_args


def test_parse_args_defaults():
    args = parse_args(["run"])
    assert args.command == "run"
    assert args.config_dir == "./config"
    assert args.overlay_config_dir is None
    assert args.max_geocodes is None
    assert args.update_cache is False


def test_parse_args_list_filters():
    args = parse_args(["list", "--all-areas", "--delivery-only"])
    assert args.all_areas is True
    assert args.delivery_only is True
    assert args.mappable is False


def test_parse_args_accepts_overlay_config_dir():
    args = parse_args(["run", "--overlay-config-dir", "config/live", "--max-geocodes", "5"])
    assert args.overlay_config_dir == "config/live"
    assert args.max_geocodes == 5
