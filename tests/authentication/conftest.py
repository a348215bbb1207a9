import pytest

from dynakube._core.intents import piggybacking


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """ Never touch the real credentials of the developer or of the CI pod. """
    monkeypatch.delenv('KUBECONFIG', raising=False)
    monkeypatch.delenv('KUBERNETES_SERVICE_HOST', raising=False)
    monkeypatch.delenv('KUBERNETES_SERVICE_PORT', raising=False)
    monkeypatch.setattr(piggybacking, 'DEFAULT_KUBECONFIG', str(tmp_path / 'absent' / 'config'))
    monkeypatch.setattr(piggybacking, 'SERVICE_ACCOUNT_DIR', str(tmp_path / 'absent' / 'sa'))


@pytest.fixture()
def service_account_dir(monkeypatch, tmp_path):
    path = tmp_path / 'serviceaccount'
    path.mkdir()
    monkeypatch.setattr(piggybacking, 'SERVICE_ACCOUNT_DIR', str(path))
    return path
