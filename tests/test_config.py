import io
import pytest
from bpf_config import ConfigStore, text_to_value, value_to_text


def test_text_to_value():
    assert text_to_value("TRUE") is True
    assert text_to_value("false") is False
    assert text_to_value("12") == 12
    assert text_to_value("callgrind") == "callgrind"


def test_value_to_text():
    assert value_to_text("bVerbose", True) == "TRUE"
    assert value_to_text("nTab", 4) == "4"
    assert value_to_text("sFormat", None) == ""


def test_defaults(tmp_path):
    config = ConfigStore()
    config.load(str(tmp_path / "missing.conf"))
    assert config.get("[General]", "bVerbose") is False
    assert config.get("[Calls]", "nTab") == 2
    assert config.get("[Generate]", "sFormat") == "callgrind"
    with pytest.raises(AttributeError):
        config.get("[Calls]", "nIndent")
    with pytest.raises(AttributeError):
        config.get("[Other]", "nTab")


def test_missing_given_file(tmp_path, messages):
    config = ConfigStore()
    config.share_output(messages)
    config.load(str(tmp_path / "missing.conf"), must_exist=True)
    assert "WARNING: configuration file" in messages.text.getvalue()


def test_load(tmp_path, messages):
    path = tmp_path / "bpf-profile.conf"
    path.write_text("""# comment
[General]
bVerbose = TRUE

[Calls]
nTab = 8
nIndent = 3
oops

[Generate]
sFormat = 1
""")
    config = ConfigStore()
    config.share_output(messages)
    config.load(str(path))
    assert config.get("[General]", "bVerbose") is True
    assert config.get("[Calls]", "nTab") == 8
    # invalid type, default used instead
    assert config.get("[Generate]", "sFormat") == "callgrind"
    warnings = messages.text.getvalue()
    assert "unknown key 'nIndent'" in warnings
    assert "line without key=value pair" in warnings
    assert "invalid 'sFormat' value '1'" in warnings


def test_save(tmp_path):
    path = tmp_path / "bpf-profile.conf"
    path.write_text("[Calls]\nnTab = 4\n")
    config = ConfigStore()
    config.load(str(path))
    out = io.StringIO()
    config.save(out)
    assert out.getvalue() == """[Calls]
nTab = 4

[General]
bVerbose = FALSE

[Generate]
sFormat = callgrind

"""


def test_set():
    config = ConfigStore()
    config.set("[Calls]", "nTab", 6)
    assert config.get("[Calls]", "nTab") == 6
    with pytest.raises(AttributeError):
        config.set("[Calls]", "nIndent", 1)
