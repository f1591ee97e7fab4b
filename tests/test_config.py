"""Config file loading tests."""
import logging

import pytest

from relaycard.config import DEFAULT_LABELS, Settings, load_config


@pytest.fixture
def config_file(tmp_path):
    def write(text):
        path = tmp_path / 'relaycard.conf'
        path.write_text(text)
        return str(path)
    return write


def test_missing_file_gives_defaults(tmp_path):
    settings = load_config(str(tmp_path / 'nothing.conf'))
    assert settings == Settings()
    assert settings.server_port == 8000
    assert settings.labels[0] == 'My appliance 1'
    assert settings.labels[7] == 'My appliance 8'


def test_full_config(config_file):
    settings = load_config(config_file("""
[HTTP server]
server_iface = 127.0.0.1
server_port = 9000
relay1_label = Lamp
relay8_label = Fan
pulse_duration = 3

[GPIO drv]
num_relays = 2
active_value = 0
relay1_gpio_pin = 17
relay2_gpio_pin = PA9

[Sainsmart drv]
num_relays = 8
"""))
    assert settings.server_iface == '127.0.0.1'
    assert settings.server_port == 9000
    assert settings.labels[0] == 'Lamp'
    assert settings.labels[1] == DEFAULT_LABELS[1]
    assert settings.labels[7] == 'Fan'
    assert settings.pulse_duration == 3
    assert settings.gpio_num_relays == 2
    assert settings.gpio_active_value == 0
    assert settings.gpio_pins[:3] == (17, 'PA9', None)
    assert settings.sainsmart_num_relays == 8


@pytest.mark.parametrize('value', ['0', '-5'])
def test_pulse_duration_at_least_one_second(config_file, value):
    settings = load_config(config_file(f'[HTTP server]\npulse_duration = {value}\n'))
    assert settings.pulse_duration == 1


def test_invalid_iface_uses_default(config_file):
    settings = load_config(config_file('[HTTP server]\nserver_iface = not-an-ip\n'))
    assert settings.server_iface == '0.0.0.0'


def test_unknown_keys_are_ignored(config_file, caplog):
    with caplog.at_level(logging.WARNING, logger='relaycardd'):
        settings = load_config(config_file("""
[HTTP server]
server_port = 8080
colour = blue
relay9_label = Nine

[Other drv]
foo = bar
"""))
    assert settings.server_port == 8080
    assert 'HTTP server/colour' in caplog.text
    assert 'HTTP server/relay9_label' in caplog.text
    assert 'Other drv' in caplog.text


@pytest.mark.parametrize('text', ['[GPIO drv]\nactive_value = 2\n',
                                  '[GPIO drv]\nnum_relays = many\n',
                                  '[HTTP server]\nserver_port = 0\n',
                                  '[HTTP server]\nserver_port = 70000\n'])
def test_bad_values_use_defaults(config_file, text):
    assert load_config(config_file(text)) == Settings()


def test_relay_count_capped(config_file):
    settings = load_config(config_file('[Sainsmart drv]\nnum_relays = 16\n'))
    assert settings.sainsmart_num_relays == 8


def test_broken_file_gives_defaults(config_file):
    assert load_config(config_file('server_port = 1\n')) == Settings()


def test_command_line_labels_override():
    settings = Settings().with_labels(['Pump', 'Light'])
    assert settings.labels[:3] == ('Pump', 'Light', 'My appliance 3')
    assert len(settings.labels) == 8
