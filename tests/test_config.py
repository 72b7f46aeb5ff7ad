"""
Tests for Chain Configuration
"""

import dataclasses

import pytest

from verichain.config import (
    DEFAULT_DESCRIPTOR,
    DEFAULT_TIMEOUTS_MS,
    ChainConfig,
    ChainOverrides,
    parse_order,
    parse_timeout_option,
    resolve,
)
from verichain.main import DEFAULT_ORDER, EXIT_CONFIG_ERROR, ChainConfigError, Layer
from verichain.runner import CommandTemplate


class TestParseOrder:
    """Tests for layer order parsing"""

    def test_comma_separated(self):
        """Should parse a comma-separated order"""
        assert parse_order("type,tests") == (Layer.TYPE, Layer.TESTS)

    def test_case_and_whitespace_insensitive(self):
        """Should ignore case and surrounding whitespace"""
        assert parse_order(" Proof , TESTS ") == (Layer.PROOF, Layer.TESTS)

    def test_sequence(self):
        """Should accept a list of names"""
        assert parse_order(["spec", "contract"]) == (Layer.SPEC, Layer.CONTRACT)

    @pytest.mark.parametrize("order", [
        "proof,spec,type,contract,tests",
        "tests",
        "tests,proof",
        "contract,type,spec",
    ])
    def test_valid_orders(self, order):
        """Should accept any order of known layers without duplicates"""
        assert len(parse_order(order)) == len(order.split(","))

    @pytest.mark.parametrize("order", [
        "proof,lint",
        "types",
        "type,,tests",
        "",
        "   ",
        [],
        ["tests", 3],
    ])
    def test_invalid_orders(self, order):
        """Should reject unknown names, empty orders and malformed entries"""
        with pytest.raises(ChainConfigError):
            parse_order(order)

    def test_duplicates_rejected(self):
        """Should reject a layer listed twice"""
        with pytest.raises(ChainConfigError, match="more than once"):
            parse_order("tests,type,tests")

    def test_error_exit_code(self):
        """Configuration errors carry exit code 15"""
        with pytest.raises(ChainConfigError) as exc_info:
            parse_order("bogus")
        assert exc_info.value.exit_code == EXIT_CONFIG_ERROR == 15


class TestChainConfig:
    """Tests for ChainConfig construction"""

    def test_defaults(self):
        """Should default to canonical order and stop-on-fail"""
        config = ChainConfig()
        assert config.order == DEFAULT_ORDER
        assert config.order == (Layer.PROOF, Layer.SPEC, Layer.TYPE, Layer.CONTRACT, Layer.TESTS)
        assert config.stop_on_fail is True
        assert dict(config.timeouts_ms) == DEFAULT_TIMEOUTS_MS

    def test_every_layer_has_timeout(self):
        """Should fill in default timeouts for layers not overridden"""
        config = ChainConfig(timeouts_ms={"tests": 1000})
        assert config.timeout_for(Layer.TESTS) == 1000
        for layer in Layer:
            assert config.timeout_for(layer) > 0

    def test_unknown_layer_rejected(self):
        """Constructing with an unknown layer name fails"""
        with pytest.raises(ChainConfigError):
            ChainConfig(order=["proof", "bogus"])

    def test_non_positive_timeout_rejected(self):
        """Should reject zero or negative timeouts"""
        with pytest.raises(ChainConfigError):
            ChainConfig(timeouts_ms={"proof": 0})
        with pytest.raises(ChainConfigError):
            ChainConfig(timeouts_ms={"proof": "soon"})

    def test_immutable(self):
        """Config cannot be mutated after construction"""
        config = ChainConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.stop_on_fail = False
        with pytest.raises(TypeError):
            config.timeouts_ms[Layer.TESTS] = 1

    def test_to_dict(self):
        """Should serialize with layer names"""
        data = ChainConfig(order="type,tests", stop_on_fail=False).to_dict()
        assert data["order"] == ["type", "tests"]
        assert data["stop_on_fail"] is False
        assert data["timeouts_ms"]["tests"] == DEFAULT_TIMEOUTS_MS[Layer.TESTS]


class TestResolve:
    """Tests for resolve() precedence and validation"""

    def test_builtin_defaults(self, tmp_path):
        """Should use built-in defaults with no descriptor, env or overrides"""
        config = resolve(root=tmp_path, env={})
        assert config.order == DEFAULT_ORDER
        assert config.stop_on_fail is True
        assert config.source is None

    def test_descriptor(self, tmp_path):
        """Should read order, policy, timeouts and commands from verichain.yml"""
        (tmp_path / "verichain.yml").write_text(
            "order: [type, tests]\n"
            "stop_on_fail: false\n"
            "timeouts_ms:\n"
            "  tests: 1234\n"
            "commands:\n"
            "  tests:\n"
            "    python: [\"{python}\", \"-m\", \"pytest\", \"-x\"]\n"
        )
        config = resolve(root=tmp_path, env={})
        assert config.order == (Layer.TYPE, Layer.TESTS)
        assert config.stop_on_fail is False
        assert config.timeout_for(Layer.TESTS) == 1234
        assert config.commands[(Layer.TESTS, "python")] == CommandTemplate(
            ("{python}", "-m", "pytest", "-x")
        )
        assert config.source.endswith("verichain.yml")

    def test_descriptor_order_string(self, tmp_path):
        """Should accept a comma-separated order in the descriptor"""
        (tmp_path / ".verichain.yml").write_text("order: \"spec,tests\"\n")
        assert resolve(root=tmp_path, env={}).order == (Layer.SPEC, Layer.TESTS)

    def test_env_beats_descriptor(self, tmp_path):
        """Environment should override the descriptor"""
        (tmp_path / "verichain.yml").write_text("order: [type, tests]\nstop_on_fail: true\n")
        config = resolve(
            root=tmp_path,
            env={
                "VERICHAIN_ORDER": "tests",
                "VERICHAIN_STOP_ON_FAIL": "false",
                "VERICHAIN_TIMEOUT_MS_TESTS": "500",
            },
        )
        assert config.order == (Layer.TESTS,)
        assert config.stop_on_fail is False
        assert config.timeout_for(Layer.TESTS) == 500

    def test_override_beats_env_and_descriptor(self, tmp_path):
        """Explicit overrides have the highest precedence"""
        (tmp_path / "verichain.yml").write_text("order: [type]\nstop_on_fail: false\n")
        config = resolve(
            ChainOverrides(order="proof,tests", stop_on_fail=True, timeouts_ms={"proof": 42}),
            root=tmp_path,
            env={"VERICHAIN_ORDER": "spec", "VERICHAIN_STOP_ON_FAIL": "false"},
        )
        assert config.order == (Layer.PROOF, Layer.TESTS)
        assert config.stop_on_fail is True
        assert config.timeout_for(Layer.PROOF) == 42

    def test_all_errors_override(self, tmp_path):
        """all_errors should turn stop_on_fail off"""
        config = resolve(ChainOverrides(all_errors=True), root=tmp_path, env={})
        assert config.stop_on_fail is False

    def test_conflicting_overrides(self, tmp_path):
        """Requesting both stop-on-fail and all-errors is a configuration error"""
        with pytest.raises(ChainConfigError, match="Conflicting"):
            resolve(ChainOverrides(stop_on_fail=True, all_errors=True), root=tmp_path, env={})

    def test_unknown_layer_in_override(self, tmp_path):
        """Unknown names are errors, never silently ignored"""
        with pytest.raises(ChainConfigError, match="Unknown layer"):
            resolve(ChainOverrides(order="type,fuzz"), root=tmp_path, env={})

    def test_unknown_layer_in_env(self, tmp_path):
        """Unknown names from the environment are errors too"""
        with pytest.raises(ChainConfigError):
            resolve(root=tmp_path, env={"VERICHAIN_ORDER": "lint"})

    def test_invalid_env_boolean(self, tmp_path):
        """Should reject a non-boolean stop-on-fail value"""
        with pytest.raises(ChainConfigError):
            resolve(root=tmp_path, env={"VERICHAIN_STOP_ON_FAIL": "maybe"})

    def test_explicit_config_path(self, tmp_path):
        """Should load a descriptor from an explicit path"""
        descriptor = tmp_path / "custom.yml"
        descriptor.write_text("order: [contract]\n")
        config = resolve(ChainOverrides(config_path=descriptor), root=tmp_path / "elsewhere", env={})
        assert config.order == (Layer.CONTRACT,)

    def test_config_path_from_env(self, tmp_path):
        """VERICHAIN_CONFIG should point at a descriptor"""
        descriptor = tmp_path / "ci.yml"
        descriptor.write_text("order: [tests]\n")
        config = resolve(root=tmp_path, env={"VERICHAIN_CONFIG": str(descriptor)})
        assert config.order == (Layer.TESTS,)

    def test_missing_config_path(self, tmp_path):
        """An explicit descriptor that does not exist is an error"""
        with pytest.raises(ChainConfigError, match="not found"):
            resolve(ChainOverrides(config_path=tmp_path / "nope.yml"), root=tmp_path, env={})

    def test_malformed_yaml(self, tmp_path):
        """Should report malformed YAML as a configuration error"""
        (tmp_path / "verichain.yml").write_text("order: [type, tests\n")
        with pytest.raises(ChainConfigError, match="Malformed"):
            resolve(root=tmp_path, env={})

    def test_non_mapping_descriptor(self, tmp_path):
        """Descriptor must be a mapping"""
        (tmp_path / "verichain.yml").write_text("- type\n- tests\n")
        with pytest.raises(ChainConfigError):
            resolve(root=tmp_path, env={})

    def test_unknown_descriptor_key(self, tmp_path):
        """Typos in the descriptor should not be silently ignored"""
        (tmp_path / "verichain.yml").write_text("stop_on_failure: false\n")
        with pytest.raises(ChainConfigError, match="Unknown key"):
            resolve(root=tmp_path, env={})

    def test_empty_descriptor(self, tmp_path):
        """An empty descriptor means defaults"""
        (tmp_path / "verichain.yml").write_text("")
        assert resolve(root=tmp_path, env={}).order == DEFAULT_ORDER

    def test_empty_order_in_descriptor(self, tmp_path):
        """An empty order is a configuration error"""
        (tmp_path / "verichain.yml").write_text("order: []\n")
        with pytest.raises(ChainConfigError, match="empty"):
            resolve(root=tmp_path, env={})

    def test_bad_command_in_descriptor(self, tmp_path):
        """Commands must be non-empty lists of strings"""
        (tmp_path / "verichain.yml").write_text("commands:\n  tests:\n    python: []\n")
        with pytest.raises(ChainConfigError):
            resolve(root=tmp_path, env={})

    def test_default_descriptor_is_valid(self, tmp_path):
        """The starter descriptor written by `config --init` should resolve"""
        (tmp_path / "verichain.yml").write_text(DEFAULT_DESCRIPTOR)
        config = resolve(root=tmp_path, env={})
        assert config.order == DEFAULT_ORDER
        assert config.stop_on_fail is True


class TestParseTimeoutOption:
    """Tests for CLI timeout assignments"""

    def test_valid(self):
        assert parse_timeout_option("tests=2500") == (Layer.TESTS, 2500)

    @pytest.mark.parametrize("option", ["tests", "tests=", "lint=100", "tests=-5"])
    def test_invalid(self, option):
        with pytest.raises(ChainConfigError):
            parse_timeout_option(option)
