import pytest

from commands import CommandNamespace, RemoteCommand
from conftest import FakeConnection, open_connection
from errors import CommandImportError


def test_import_whole_library_keeps_export_order():
    ns = CommandNamespace()
    conn = open_connection("H1", "Lib", ["Get-Thing", "Set-Thing"])

    assert ns.import_commands(conn, "Lib") == ["Get-Thing", "Set-Thing"]
    assert list(ns) == ["Get-Thing", "Set-Thing"]
    assert isinstance(ns["Get-Thing"], RemoteCommand)
    assert ns["Get-Thing"].host == "H1"


def test_import_subset_only():
    ns = CommandNamespace()
    conn = open_connection("H1", "Lib", ["Get-Thing", "Set-Thing"])

    ns.import_commands(conn, "Lib", ["Set-Thing"])

    assert ns.names() == ["Set-Thing"]
    assert "Get-Thing" not in ns


def test_missing_command_binds_nothing():
    ns = CommandNamespace()
    conn = open_connection("H1", "Lib", ["Get-Thing"])

    with pytest.raises(CommandImportError) as excinfo:
        ns.import_commands(conn, "Lib", ["Get-Thing", "Nope", "Also-Nope"])

    assert excinfo.value.missing == ("Nope", "Also-Nope")
    assert excinfo.value.library == "Lib"
    assert len(ns) == 0


def test_unloaded_library_cannot_be_imported():
    ns = CommandNamespace()
    conn = FakeConnection("H1")

    with pytest.raises(CommandImportError):
        ns.import_commands(conn, "Lib")


def test_same_name_is_overwritten():
    ns = CommandNamespace()
    first = open_connection("H1", "Lib", ["Get-Thing"])
    second = open_connection("H2", "Other", ["Get-Thing"])

    ns.import_commands(first, "Lib")
    ns.import_commands(second, "Other")

    assert ns["Get-Thing"].connection is second
    assert ns["Get-Thing"].library == "Other"
    assert len(ns) == 1


def test_forget_only_drops_commands_of_that_connection():
    ns = CommandNamespace()
    first = open_connection("H1", "Lib", ["Get-Thing"])
    second = open_connection("H2", "Other", ["Set-Other"])
    ns.import_commands(first, "Lib")
    ns.import_commands(second, "Other")

    assert ns.forget(first) == 1
    assert ns.names() == ["Set-Other"]


def test_attribute_access_maps_underscores_to_dashes():
    ns = CommandNamespace()
    conn = open_connection("H1", "Lib", ["Get-Thing", "plain_name"])
    ns.import_commands(conn, "Lib")

    assert ns.Get_Thing is ns["Get-Thing"]
    assert ns.plain_name is ns["plain_name"]
    with pytest.raises(AttributeError):
        ns.Missing_Thing


def test_proxy_forwards_call_and_timeout():
    conn = open_connection("H1", "Lib", ["Get-Thing"])
    cmd = RemoteCommand(conn, "Lib", "Get-Thing")

    assert cmd("x") == "Get-Thing x"
    assert conn.calls == [("Lib", "Get-Thing", ("x",))]
    assert "Lib:Get-Thing" in repr(cmd)
