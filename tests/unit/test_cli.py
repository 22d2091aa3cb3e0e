"""
Unit tests for the command line interface (blobvault/cli.py).
"""

import base64
from unittest.mock import patch

import pytest

from blobvault import cli
from blobvault import scheduler as scheduler_module


@pytest.fixture(autouse=True)
def no_logging_setup():
    """Keep CLI tests from reconfiguring the root logger."""
    with patch('blobvault.cli.configure_logging') as mock_configure:
        yield mock_configure


@pytest.fixture
def use_config(test_config):
    """Make get_config() return the temporary test configuration."""
    with patch('blobvault.cli.get_config', return_value=test_config):
        yield test_config


class TestKeygen:
    """Test the keygen command."""

    def test_prints_key_and_iv(self, capsys):
        """Test keygen prints a 32-byte key and a 16-byte IV."""
        assert cli.main(['keygen']) == cli.EXIT_OK

        lines = dict(
            line.split('=', 1)
            for line in capsys.readouterr().out.splitlines()
            if '=' in line and not line.startswith('#')
        )
        assert len(base64.b64decode(lines['BACKUP_AES_KEY'])) == 32
        assert len(base64.b64decode(lines['BACKUP_AES_IV'])) == 16

    def test_does_not_configure_logging(self, no_logging_setup):
        """Test keygen output stays clean of log lines."""
        cli.main(['keygen'])

        no_logging_setup.assert_not_called()


class TestBackupCommand:
    """Test the backup command."""

    def test_success_exits_zero(self, use_config, storage_dir, capsys):
        """Test a successful run exits 0 and reports the blob."""
        assert cli.main(['backup']) == cli.EXIT_OK

        assert 'sample_backup_encrypted.zip' in capsys.readouterr().out
        assert (storage_dir / 'backups' / 'sample_backup_encrypted.zip').exists()

    def test_failure_exits_one(self, use_config, tmp_path, capsys):
        """Test a failed run exits 1 so a scheduler can tell it failed."""
        code = cli.main(['backup', '--source', str(tmp_path / 'missing.bak')])

        assert code == cli.EXIT_FAILED
        assert 'Backup failed' in capsys.readouterr().err

    def test_overrides_are_passed(self, use_config):
        """Test command line flags override config values."""
        with patch('blobvault.backup.executor.run_backup_from_config') as mock_run:
            mock_run.return_value.ok = True
            cli.main(['backup', '--source', '/x.bak', '--container', 'c', '--provider', 's3'])

        mock_run.assert_called_once_with(
            use_config, source_path='/x.bak', container_name='c', storage_provider='s3'
        )

    def test_unknown_env_exits_two(self, capsys):
        """Test an unknown configuration name exits 2."""
        assert cli.main(['--env', 'staging', 'backup']) == cli.EXIT_CONFIG
        assert 'Unknown configuration' in capsys.readouterr().err


class TestRestoreCommand:
    """Test the restore command."""

    def test_restore_local_artifact(self, use_config, artifact_dir, tmp_path):
        """Test restoring the artifact a backup left on disk."""
        assert cli.main(['backup']) == cli.EXIT_OK
        output = tmp_path / 'restored.bak'

        code = cli.main(['restore', str(artifact_dir / 'sample_backup_encrypted.zip'), str(output)])

        assert code == cli.EXIT_OK
        assert output.read_bytes() == b'\xab' * 10

    def test_restore_with_download(self, use_config, artifact_dir, tmp_path):
        """Test restoring straight from the container."""
        use_config.KEEP_ARTIFACT = False
        assert cli.main(['backup']) == cli.EXIT_OK
        assert not (artifact_dir / 'sample_backup_encrypted.zip').exists()
        output = tmp_path / 'restored.bak'

        code = cli.main(['restore', '--download', 'sample_backup_encrypted.zip', str(output)])

        assert code == cli.EXIT_OK
        assert output.read_bytes() == b'\xab' * 10

    def test_restore_missing_artifact(self, use_config, tmp_path, capsys):
        """Test restoring a missing artifact exits 1."""
        code = cli.main(['restore', str(tmp_path / 'missing.zip'), str(tmp_path / 'out')])

        assert code == cli.EXIT_FAILED
        assert 'Restore failed' in capsys.readouterr().err

    def test_restore_without_key(self, use_config, tmp_path):
        """Test restoring without a configured key exits 1."""
        use_config.AES_KEY = None

        code = cli.main(['restore', str(tmp_path / 'a.zip'), str(tmp_path / 'out')])

        assert code == cli.EXIT_FAILED


class TestScheduleCommand:
    """Test the schedule command."""

    def teardown_method(self):
        scheduler_module.scheduler = None
        scheduler_module.app_config = None

    def test_starts_scheduler(self, use_config, mock_scheduler):
        """Test schedule starts the scheduler with the config."""
        assert cli.main(['schedule']) == cli.EXIT_OK

        mock_scheduler.start.assert_called_once()
        assert scheduler_module.app_config == use_config

    def test_keyboard_interrupt_exits_cleanly(self, use_config, mock_scheduler):
        """Test Ctrl+C stops the scheduler and exits 0."""
        mock_scheduler.start.side_effect = KeyboardInterrupt

        assert cli.main(['schedule']) == cli.EXIT_OK

    def test_invalid_cron_exits_two(self, use_config, mock_scheduler, capsys):
        """Test an invalid schedule exits 2."""
        use_config.SCHEDULE_CRON = 'not a cron'

        assert cli.main(['schedule']) == cli.EXIT_CONFIG
        assert 'invalid SCHEDULE_CRON' in capsys.readouterr().err
        mock_scheduler.start.assert_not_called()

    def test_invalid_timezone_exits_two(self, use_config, mock_scheduler, capsys):
        """Test an unknown scheduler timezone exits 2."""
        use_config.SCHEDULER_TIMEZONE = 'Mars/Olympus'

        assert cli.main(['schedule']) == cli.EXIT_CONFIG
        assert 'invalid SCHEDULER_TIMEZONE' in capsys.readouterr().err
        mock_scheduler.start.assert_not_called()


class TestListCommand:
    """Test the list command."""

    def test_lists_uploaded_artifact(self, use_config, capsys):
        """Test a backed up artifact shows up with its size."""
        assert cli.main(['backup']) == cli.EXIT_OK
        capsys.readouterr()

        assert cli.main(['list']) == cli.EXIT_OK

        name, size, modified = capsys.readouterr().out.strip().split('\t')
        assert name == 'sample_backup_encrypted.zip'
        assert int(size) > 0
        assert modified.startswith('20')

    def test_prefix_filters(self, use_config, capsys):
        """Test --prefix hides other blobs."""
        assert cli.main(['backup']) == cli.EXIT_OK
        capsys.readouterr()

        assert cli.main(['list', '--prefix', 'other']) == cli.EXIT_OK
        assert capsys.readouterr().out == ''

    def test_unconfigured_provider_exits_one(self, use_config, capsys):
        """Test a provider without credentials exits 1."""
        use_config.STORAGE_PROVIDER = 'azure'
        use_config.AZURE_STORAGE_CONNECTION_STRING = None

        assert cli.main(['list']) == cli.EXIT_FAILED
        assert 'Listing failed' in capsys.readouterr().err
