"""End-to-end tests of the condopay CLI."""

import re
from decimal import Decimal

import pytest

from condopay.cli.main import cli


def _created_id(output):
    match = re.search(r"\(ID: (\d+)\)", output)
    assert match, output
    return int(match.group(1))


@pytest.fixture
def run(cli_runner, temp_db, tmp_path):
    """Invoke the CLI against the temporary database."""
    env = {
        "CONDOPAY_EVIDENCE_DIR": str(tmp_path / "evidence"),
        # Nothing listens here, so the resolver falls back to stored rates
        "CONDOPAY_RATE_PRIMARY_URL": "http://127.0.0.1:9/oficial",
        "CONDOPAY_RATE_SECONDARY_URL": "http://127.0.0.1:9/bolivar",
        "CONDOPAY_RATE_TIMEOUT_SECONDS": "1",
    }

    def _run(*args):
        return cli_runner.invoke(cli, ["--db-path", temp_db.database_path, *args], env=env)

    return _run


@pytest.fixture
def community(run):
    """One condominium with an administrator and a resident with a unit."""
    result = run("condo", "create", "Residencias El Parque")
    assert result.exit_code == 0
    condo_id = _created_id(result.output)

    result = run("unit", "create", str(condo_id), "Apto 4-B")
    assert result.exit_code == 0
    unit_id = _created_id(result.output)

    result = run("resident", "create", "Junta", "--condo", str(condo_id), "--admin")
    assert result.exit_code == 0
    assert "Created admin 'Junta'" in result.output
    admin_id = _created_id(result.output)

    result = run("resident", "create", "Ana", "--unit", str(unit_id))
    assert result.exit_code == 0
    resident_id = _created_id(result.output)

    return {"condo": condo_id, "unit": unit_id, "admin": admin_id, "resident": resident_id}


def test_help_does_not_need_a_database(cli_runner):
    result = cli_runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "Condominium payment reconciliation" in result.output


def test_directory_listing(run, community):
    result = run("resident", "list", "--condo", str(community["condo"]))
    assert result.exit_code == 0
    assert "Ana" in result.output
    assert "Junta" not in result.output

    result = run("resident", "list", "--admins")
    assert "Junta" in result.output

    result = run("condo", "list")
    assert "Residencias El Parque" in result.output


def test_partial_payment_then_overpayment(run, community, tmp_path):
    admin, resident = str(community["admin"]), str(community["resident"])

    result = run("obligation", "bulk", "--admin", admin, "--concept", "Condominio abril", "--amount", "100")
    assert result.exit_code == 0
    assert "Created: 1  Skipped: 0  Failed: 0" in result.output

    result = run("obligation", "list", "--resident", resident)
    obligation_id = re.search(r"ID:\s+(\d+)", result.output).group(1)

    receipt = tmp_path / "recibo.png"
    receipt.write_bytes(b"\x89PNG fake receipt")
    result = run(
        "obligation", "submit", obligation_id, "--resident", resident, "--amount", "60",
        "--reference", "004512", "--method", "pago movil", "--evidence", str(receipt),
    )
    assert result.exit_code == 0
    assert "awaiting validation" in result.output
    assert any((tmp_path / "evidence").iterdir())

    result = run("validate", "approve", obligation_id, "--admin", admin)
    assert result.exit_code == 0
    assert f"Obligation {obligation_id}: partially_paid" in result.output
    remainder_id = re.search(r"Remainder obligation (\d+): Bs 40.00", result.output).group(1)

    result = run("obligation", "submit", remainder_id, "--resident", resident, "--amount", "50")
    assert result.exit_code == 0
    result = run("validate", "approve", remainder_id, "--admin", admin)
    assert result.exit_code == 0
    assert f"Obligation {remainder_id}: paid" in result.output
    assert "Excess carried to credit: Bs 10.00" in result.output

    result = run("credit", "balance", resident)
    assert "Available credit: Bs 10.00" in result.output

    result = run("obligation", "statement", resident)
    assert "Outstanding: Bs 0.00 (0 open)" in result.output
    assert "Paid: Bs 100.00" in result.output

    result = run("obligation", "show", remainder_id)
    assert result.exit_code == 0
    assert f"Remainder of obligation {obligation_id}" in result.output
    assert "approved" in result.output

    result = run("resident", "inbox", resident)
    assert "payment_approved" in result.output


def test_reject_and_reopen(run, community):
    admin, resident = str(community["admin"]), str(community["resident"])
    result = run("obligation", "create", "--resident", resident, "--concept", "Agua", "--amount", "150")
    assert result.exit_code == 0
    obligation_id = re.search(r"Created obligation (\d+)", result.output).group(1)

    run("obligation", "submit", obligation_id, "--resident", resident, "--amount", "150")
    result = run("validate", "reject", obligation_id, "--admin", admin, "--reason", "Reference not found")
    assert result.exit_code == 0
    assert f"Obligation {obligation_id} rejected" in result.output

    result = run("obligation", "reopen", obligation_id, "--actor", resident)
    assert result.exit_code == 0
    assert "reopened (pending)" in result.output


def test_domain_errors_exit_with_message(run, community):
    result = run("validate", "approve", "99", "--admin", str(community["admin"]))
    assert result.exit_code == 1
    assert "Error: Obligation 99 not found" in result.output

    result = run("obligation", "create", "--resident", str(community["resident"]), "--concept", "Agua",
                 "--amount", "abc")
    assert result.exit_code == 1
    assert "Invalid amount" in result.output

    run("obligation", "create", "--resident", str(community["resident"]), "--concept", "Agua", "--amount", "5")
    result = run("obligation", "create", "--resident", str(community["resident"]), "--concept", "Agua",
                 "--amount", "5")
    assert result.exit_code == 1
    assert "already has unresolved obligation" in result.output


def test_credit_commands(run, community, temp_db):
    resident = str(community["resident"])
    temp_db.add_credit_entry(community["resident"], Decimal("25.00"), None)
    result = run("obligation", "create", "--resident", resident, "--concept", "Gas", "--amount", "40")
    obligation_id = re.search(r"Created obligation (\d+)", result.output).group(1)

    result = run("credit", "apply", resident, obligation_id, "--amount", "10")
    assert result.exit_code == 0
    assert f"Applied Bs 10.00 to obligation {obligation_id}" in result.output

    result = run("credit", "apply-all", resident)
    assert f"Applied Bs 15.00 to obligation {obligation_id}" in result.output

    result = run("credit", "entries", resident)
    assert "available" not in result.output
    assert f"consumed by {obligation_id}" in result.output


def test_group_commands(run, community):
    admin = str(community["admin"])
    result = run("group", "create", "--admin", admin, "--concept", "Bomba de agua", "--total", "90",
                 "--condo", str(community["condo"]))
    assert result.exit_code == 0
    group_id = re.search(r"Created group (grp-[0-9a-f]+)", result.output).group(1)

    result = run("group", "progress", group_id)
    assert result.exit_code == 0
    assert "Collected: Bs 0.00 of Bs 90.00 (0.00%)" in result.output
    assert "Participants paid: 0/1" in result.output

    result = run("group", "progress", "grp-unknown")
    assert result.exit_code == 1


def test_rate_commands(run):
    result = run("rate", "set", "10")
    assert result.exit_code == 1
    assert "at least 20" in result.output

    result = run("rate", "set", "36,50")
    assert result.exit_code == 0
    assert "Recorded rate Bs 36.50 (manual)" in result.output

    result = run("rate", "show")
    assert result.exit_code == 0
    assert "1 USD = Bs 36.50 (manual, stored)" in result.output


def test_invalid_setting_is_a_usage_error(cli_runner, temp_db):
    result = cli_runner.invoke(
        cli,
        ["--db-path", temp_db.database_path, "rate", "show"],
        env={"CONDOPAY_VALIDATION_ATTEMPTS": "none"},
    )
    assert result.exit_code == 2
    assert "Invalid CONDOPAY_* setting" in result.output
    assert "validation_attempts" in result.output
