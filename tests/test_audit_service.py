import csv
import json
from datetime import datetime, timedelta
from io import StringIO

import pytest

from familybudget.core.errors import NotFoundError
from familybudget.services.audit_service import (
    entries_in_range,
    entry_to_dict,
    export_audit_csv,
    history_for_transaction,
)
from familybudget.services.transaction_service import (
    TransactionInput,
    TransactionPatch,
    create_transaction,
    delete_transaction,
    update_transaction,
)


def _lifecycle(db, team):
    tx = create_transaction(
        db,
        team.team_id,
        team.user_id,
        TransactionInput(amount="45.90", description="Farmacia", transaction_date="2024-05-03"),
        notifier=None,
    )
    update_transaction(
        db, tx.id, team.team_id, team.user_id, TransactionPatch(amount="50"), notifier=None
    )
    delete_transaction(db, tx.id, team.team_id, team.user_id, notifier=None)
    return tx


def test_history_is_ordered_and_survives_deletion(db_session, team):
    tx = _lifecycle(db_session, team)

    history = history_for_transaction(db_session, tx.id, team.team_id)

    assert [e.change_type.value for e in history] == ["created", "updated", "deleted"]
    assert history[1].old_value["amount"] == "45.90"
    assert history[1].new_value["amount"] == "50.00"
    assert history[2].new_value is None


def test_history_of_other_team_transaction_is_not_found(db_session, team, other_team):
    tx = _lifecycle(db_session, team)
    with pytest.raises(NotFoundError):
        history_for_transaction(db_session, tx.id, other_team.team_id)


def test_entries_in_range_are_team_scoped(db_session, team, other_team):
    _lifecycle(db_session, team)
    _lifecycle(db_session, other_team)

    assert len(entries_in_range(db_session, team.team_id)) == 3

    future = datetime.utcnow() + timedelta(days=1)
    assert entries_in_range(db_session, team.team_id, start=future) == []


def test_entry_to_dict_is_json_safe(db_session, team):
    tx = _lifecycle(db_session, team)
    data = [entry_to_dict(e) for e in history_for_transaction(db_session, tx.id, team.team_id)]
    assert json.loads(json.dumps(data))[0]["change_type"] == "created"


def test_export_audit_csv(db_session, team):
    _lifecycle(db_session, team)

    output = export_audit_csv(entries_in_range(db_session, team.team_id))
    rows = list(csv.DictReader(StringIO(output)))

    assert [row["change_type"] for row in rows] == ["created", "updated", "deleted"]
    assert rows[0]["old_value"] == ""
    assert json.loads(rows[0]["new_value"])["description"] == "Farmacia"
    assert rows[2]["new_value"] == ""
