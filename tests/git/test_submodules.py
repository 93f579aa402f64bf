import pytest

from mirrorcheckout.git.runner import CommandResult
from mirrorcheckout.git.submodules import submodule_helper_args, update_submodules
from mirrorcheckout.model.request import CheckoutRequest


def make_request(**kwargs):
    return CheckoutRequest(owner="acme", repo="tools", **kwargs)


@pytest.mark.short
class TestSubmoduleHelper:
    def test_shallow(self, tmp_path):
        args = submodule_helper_args(
            make_request(submodules="shallow", fetch_depth=1),
            tmp_path / "mirror",
            tmp_path / "work",
        )
        assert args == [
            "git-checkout",
            "update-submodules",
            "--mirror_base_path",
            str(tmp_path / "mirror"),
            "--repository_path",
            str(tmp_path / "work"),
            "--depth",
            "1",
        ]

    def test_all_flags(self, tmp_path):
        args = submodule_helper_args(
            make_request(
                submodules="recursive",
                fetch_depth=0,
                filter="blob:none",
                dissociate="recursive",
            ),
            tmp_path,
            tmp_path,
            debug=True,
        )
        assert "--recurse" in args
        assert "--depth" not in args
        assert args[args.index("--filter") + 1] == "blob:none"
        assert "--dissociate" in args
        assert args[-1] == "--debug_to_console"

    def test_main_dissociation_does_not_apply(self, tmp_path):
        args = submodule_helper_args(
            make_request(submodules="shallow", dissociate="main"), tmp_path, tmp_path
        )
        assert "--dissociate" not in args

    def test_helper_is_retried(self, runner, fake_process, tmp_path):
        fake_process.on("nsc", CommandResult(1), CommandResult(0))

        request = make_request(submodules="shallow", max_attempts=2)
        update_submodules(runner, request, tmp_path, tmp_path)

        assert len(fake_process.calls) == 2
        assert fake_process.calls[0].argv[:3] == [
            "nsc",
            "git-checkout",
            "update-submodules",
        ]
