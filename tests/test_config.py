"""
Tests for configuration loading.
"""

from pathlib import Path
import pytest

from hls_snapshot.utils.config import (
    Config,
    StreamConfig,
    load_config,
    get_config,
    validate_url_template,
    ConfigurationError,
)


class TestConfig:
    """Test configuration loading and validation."""

    @pytest.fixture
    def valid_config_content(self):
        """Valid configuration YAML content."""
        return """
url_template: "https://cams.example.net/live/{camera_id}/"
camera_ids: ["cam1", "cam2"]
poll_interval: 30
clean_up: true
output_dir: "./data/frames"
keep_frames: 2

http:
  verify_ssl: false
  timeout: 15

ffmpeg:
  path: /usr/local/bin/ffmpeg
  timeout: 20

logging:
  level: "INFO"
  file: "./data/logs/test.log"
"""

    @pytest.fixture
    def config_file(self, valid_config_content, tmp_path):
        """Create a temporary config file."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text(valid_config_content)
        return config_path

    def write_config(self, tmp_path, content, name="config.yaml"):
        config_path = tmp_path / name
        config_path.write_text(content)
        return str(config_path)

    def test_load_valid_config(self, config_file):
        """Test loading a valid configuration."""
        config = load_config(str(config_file))

        assert config.get('url_template') == 'https://cams.example.net/live/{camera_id}/'
        assert config.get('camera_ids') == ['cam1', 'cam2']
        assert config.get('http.timeout') == 15
        assert get_config() is config

    def test_config_not_found(self):
        """Test error when config file not found."""
        with pytest.raises(ConfigurationError) as exc_info:
            load_config('nonexistent.yaml')

        assert "not found" in str(exc_info.value)

    def test_env_var_substitution(self, tmp_path, monkeypatch):
        """Test environment variable substitution."""
        monkeypatch.setenv('TEST_CAMERA_HOST', 'cams.internal')

        path = self.write_config(tmp_path, """
url_template: "https://${TEST_CAMERA_HOST}/{camera_id}/"
camera_ids: ["cam1"]
""")
        config = load_config(path)

        assert config.get('url_template') == 'https://cams.internal/{camera_id}/'

    def test_stream_config(self, config_file):
        """Test building the immutable capture settings."""
        stream = load_config(str(config_file)).get_stream_config()

        assert isinstance(stream, StreamConfig)
        assert stream.camera_ids == ('cam1', 'cam2')
        assert stream.poll_interval == 30
        assert stream.clean_up is True
        assert stream.output_dir == Path('./data/frames')
        assert stream.keep_frames == 2
        assert stream.verify_ssl is False
        assert stream.http_timeout == 15
        assert stream.ffmpeg_path == '/usr/local/bin/ffmpeg'
        assert stream.ffmpeg_timeout == 20
        assert stream.attempt_timeout == 30
        assert stream.playlist_name == 'index.m3u8'

    def test_stream_config_is_immutable(self, config_file):
        stream = load_config(str(config_file)).get_stream_config()

        with pytest.raises(AttributeError):
            stream.poll_interval = 5

    def test_defaults_applied(self, tmp_path):
        """Zero interval and empty output dir fall back to defaults."""
        path = self.write_config(tmp_path, """
url_template: "http://host/{camera_id}/"
camera_ids: ["cam1"]
poll_interval: 0
output_dir: ""
""")
        stream = load_config(path).get_stream_config()

        assert stream.poll_interval == 60
        assert stream.output_dir == Path('.')
        assert stream.clean_up is False
        assert stream.keep_frames == 1
        assert stream.ffmpeg_path == 'ffmpeg'

    def test_stream_url(self, config_file):
        stream = load_config(str(config_file)).get_stream_config()

        assert stream.stream_url('cam2') == 'https://cams.example.net/live/cam2/'
        assert stream.stream_dir('cam2') == Path('./data/frames/cam2')

    def test_json_config(self, tmp_path):
        """JSON files load as YAML."""
        path = self.write_config(tmp_path, """
{"url_template": "http://host/{camera_id}/", "camera_ids": ["a", "b"], "clean_up": true}
""", name="config.json")
        stream = load_config(path).get_stream_config()

        assert stream.camera_ids == ('a', 'b')
        assert stream.clean_up is True

    def test_invalid_yaml(self, tmp_path):
        """Test error on invalid YAML."""
        path = self.write_config(tmp_path, "invalid: yaml: content: [")

        with pytest.raises(ConfigurationError) as exc_info:
            load_config(path)

        assert "Invalid YAML" in str(exc_info.value)

    def test_missing_url_template(self, tmp_path):
        path = self.write_config(tmp_path, 'camera_ids: ["cam1"]\n')

        with pytest.raises(ConfigurationError) as exc_info:
            load_config(path)

        assert "url_template" in str(exc_info.value)

    def test_missing_camera_ids(self, tmp_path):
        path = self.write_config(tmp_path, """
url_template: "http://host/{camera_id}/"
camera_ids: []
""")
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(path)

        assert "camera_ids" in str(exc_info.value)

    @pytest.mark.parametrize('camera_ids', [
        '["cam1", "cam1"]',
        '["cam1", ""]',
        '["../etc"]',
        '["a/b"]',
    ])
    def test_invalid_camera_ids(self, tmp_path, camera_ids):
        path = self.write_config(tmp_path, f"""
url_template: "http://host/{{camera_id}}/"
camera_ids: {camera_ids}
""")
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_negative_interval(self, tmp_path):
        path = self.write_config(tmp_path, """
url_template: "http://host/{camera_id}/"
camera_ids: ["cam1"]
poll_interval: -5
""")
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(path)

        assert "poll_interval" in str(exc_info.value)

    @pytest.mark.parametrize('status_every', ['"10"', '-1', 'true', '2.5'])
    def test_invalid_status_every(self, tmp_path, status_every):
        path = self.write_config(tmp_path, f"""
url_template: "http://host/{{camera_id}}/"
camera_ids: ["cam1"]
logging:
  status_every: {status_every}
""")
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(path)

        assert "status_every" in str(exc_info.value)

    def test_status_every_zero_allowed(self, tmp_path):
        path = self.write_config(tmp_path, """
url_template: "http://host/{camera_id}/"
camera_ids: ["cam1"]
logging:
  status_every: 0
""")
        assert load_config(path).get('logging.status_every') == 0


class TestUrlTemplate:
    """Test URL template validation."""

    def test_valid_template(self):
        validate_url_template("https://host/hls/{camera_id}/")

    @pytest.mark.parametrize('template', [
        "",
        "https://host/hls/",
        "https://host/{camera_id}/{camera_id}/",
        "https://host/{stream}/",
        "https://host/{}/",
        "https://host/{camera_id/",
        "https://host/{camera_id!r}/",
        "https://host/{camera_id:>8}/",
        "https://host/{camera_id!s:.3}/",
    ])
    def test_invalid_template(self, template):
        with pytest.raises(ConfigurationError):
            validate_url_template(template)

    def test_escaped_braces_allowed(self):
        validate_url_template("https://host/{{literal}}/{camera_id}/")
