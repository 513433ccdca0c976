import pytest
from conftest import FakeLedger
from solders.pubkey import Pubkey

from solrelay_core.errors import UploadAborted, ValidationError
from solrelay_core.ids import cache_address, internal_address
from solrelay_core.protocol import (
    PROVER_PROGRAM_ID,
    RELAY_PROGRAM_ID,
    VALIDATE_PROOF_DISCRIMINATOR,
)
from solrelay_prove.chunks import decode_chunk_instruction, split_into_chunks
from solrelay_prove.upload import ChunkUploader, UploadCursor, ValidationTrigger

PROOF = bytes(range(256)) * 3 + b"tail"
COMPUTE_BUDGET_ID = Pubkey.from_string("ComputeBudget111111111111111111111111111111")


def make_uploader(ledger, signer, sleeps, cursor_path=None):
    return ChunkUploader(
        ledger, signer, RELAY_PROGRAM_ID, PROVER_PROGRAM_ID, cursor_path=cursor_path, sleep=sleeps.append
    )


def test_chunks_are_sent_in_order_one_per_transaction(ledger, signer, sleeps):
    chunks = split_into_chunks(PROOF, 4)
    report = make_uploader(ledger, signer, sleeps).upload(chunks)

    assert len(ledger.sent) == 4
    bodies = []
    for ixs in ledger.sent:
        assert len(ixs) == 1
        ix = ixs[0]
        assert ix.program_id == Pubkey.from_string(RELAY_PROGRAM_ID)
        assert ix.accounts[1].pubkey == cache_address(signer.pubkey(), PROVER_PROGRAM_ID)
        assert ix.accounts[1].is_writable
        assert ix.accounts[2].pubkey == signer.pubkey() and ix.accounts[2].is_signer
        bodies.append(decode_chunk_instruction(bytes(ix.data))[1])
    assert b"".join(bodies) == PROOF

    assert sleeps == [2.0, 2.0, 2.0, 2.0]
    assert report.signatures == ["sig-0", "sig-1", "sig-2", "sig-3"]
    assert report.bytes_uploaded == len(PROOF)
    assert report.resumed_from == 0


def test_failure_aborts_with_network_logs(signer, sleeps):
    ledger = FakeLedger(fail_at=2, fail_logs=["Program log: AnchorError: ChunkOverflow"])
    with pytest.raises(UploadAborted) as exc:
        make_uploader(ledger, signer, sleeps).upload(split_into_chunks(PROOF, 4))

    assert exc.value.index == 2
    assert exc.value.logs == ["Program log: AnchorError: ChunkOverflow"]
    assert len(ledger.sent) == 2
    assert ledger.attempts == 3


def test_interrupted_upload_resumes_after_last_confirmed_chunk(signer, sleeps, tmp_path):
    cursor = tmp_path / "upload.cursor"
    chunks = split_into_chunks(PROOF, 4)

    with pytest.raises(UploadAborted):
        make_uploader(FakeLedger(fail_at=2), signer, sleeps, cursor).upload(chunks)
    saved = UploadCursor.load(cursor)
    assert saved.confirmed == 2
    assert saved.signatures == ["sig-0", "sig-1"]
    assert saved.pending == "sig-2"

    retry = FakeLedger()
    report = make_uploader(retry, signer, sleeps, cursor).upload(chunks)
    sent = [decode_chunk_instruction(bytes(ixs[0].data))[1] for ixs in retry.sent]
    assert sent == [chunks[2].data, chunks[3].data]
    assert report.resumed_from == 2
    assert report.signatures == ["sig-0", "sig-1", "sig-0", "sig-1"]
    assert not cursor.exists()


def test_cursor_for_another_proof_is_reset(ledger, signer, sleeps, tmp_path):
    cursor = tmp_path / "upload.cursor"
    UploadCursor(digest="00" * 32, total=4, confirmed=3, signatures=["a", "b", "c"]).save(cursor)

    report = make_uploader(ledger, signer, sleeps, cursor).upload(split_into_chunks(PROOF, 4))
    assert report.resumed_from == 0
    assert len(ledger.sent) == 4


def test_cursor_is_persisted_before_each_submission(signer, sleeps, tmp_path):
    cursor = tmp_path / "upload.cursor"
    seen = []

    class RecordingLedger(FakeLedger):
        def submit(self, signed):
            saved = UploadCursor.load(cursor)
            seen.append((saved.confirmed, saved.pending))
            return super().submit(signed)

    make_uploader(RecordingLedger(), signer, sleeps, cursor).upload(split_into_chunks(PROOF, 4))
    assert seen == [(0, "sig-0"), (1, "sig-1"), (2, "sig-2"), (3, "sig-3")]


class CrashingLedger(FakeLedger):
    """Dies once on the given attempt, either before or after the transaction lands."""

    def __init__(self, crash_at, landed):
        super().__init__()
        self.crash_at = crash_at
        self.landed = landed

    def submit(self, signed):
        crash = self.attempts == self.crash_at
        if crash:
            self.crash_at = None
            if not self.landed:
                self.attempts += 1
                self.unsent.pop(signed.signature)
                raise RuntimeError("process killed")
        sig = super().submit(signed)
        if crash:
            raise RuntimeError("process killed")
        return sig


def test_chunk_that_landed_before_a_crash_is_not_resent(signer, sleeps, tmp_path):
    cursor = tmp_path / "upload.cursor"
    chunks = split_into_chunks(PROOF, 4)
    ledger = CrashingLedger(crash_at=2, landed=True)

    with pytest.raises(RuntimeError):
        make_uploader(ledger, signer, sleeps, cursor).upload(chunks)
    saved = UploadCursor.load(cursor)
    assert (saved.confirmed, saved.pending) == (2, "sig-2")

    report = make_uploader(ledger, signer, sleeps, cursor).upload(chunks)
    sent = [decode_chunk_instruction(bytes(ixs[0].data))[1] for ixs in ledger.sent]
    assert sent == [c.data for c in chunks]
    assert report.resumed_from == 3
    assert report.signatures == ["sig-0", "sig-1", "sig-2", "sig-3"]


def test_chunk_lost_before_landing_is_resent(signer, sleeps, tmp_path):
    cursor = tmp_path / "upload.cursor"
    chunks = split_into_chunks(PROOF, 4)
    ledger = CrashingLedger(crash_at=2, landed=False)

    with pytest.raises(RuntimeError):
        make_uploader(ledger, signer, sleeps, cursor).upload(chunks)

    report = make_uploader(ledger, signer, sleeps, cursor).upload(chunks)
    sent = [decode_chunk_instruction(bytes(ixs[0].data))[1] for ixs in ledger.sent]
    assert sent == [c.data for c in chunks]
    assert report.resumed_from == 2
    assert report.signatures == ["sig-0", "sig-1", "sig-3", "sig-4"]


def test_out_of_order_chunks_are_refused(ledger, signer, sleeps):
    chunks = split_into_chunks(PROOF, 4)
    with pytest.raises(ValueError, match="Out-of-order"):
        make_uploader(ledger, signer, sleeps).upload([chunks[0], chunks[2], chunks[1], chunks[3]])
    assert len(ledger.sent) == 1


def test_validation_bundles_compute_budget(ledger, signer):
    report = ValidationTrigger(ledger, signer, RELAY_PROGRAM_ID, PROVER_PROGRAM_ID).validate()

    (ixs,) = ledger.sent
    assert [ix.program_id for ix in ixs[:2]] == [COMPUTE_BUDGET_ID, COMPUTE_BUDGET_ID]
    validate = ixs[2]
    assert bytes(validate.data) == VALIDATE_PROOF_DISCRIMINATOR
    assert validate.accounts[1].pubkey == cache_address(signer.pubkey(), PROVER_PROGRAM_ID)
    assert validate.accounts[3].pubkey == internal_address(PROVER_PROGRAM_ID)
    assert report.signature == "sig-0"
    assert report.logs == ["Program log: tx 0"]


def test_validation_failure_is_terminal(signer):
    ledger = FakeLedger(fail_at=0, fail_logs=["Program log: proof verification failed"])
    trigger = ValidationTrigger(ledger, signer, RELAY_PROGRAM_ID, PROVER_PROGRAM_ID)

    with pytest.raises(ValidationError) as exc:
        trigger.validate()
    assert exc.value.logs == ["Program log: proof verification failed"]
    assert ledger.attempts == 1


def test_empty_proof_is_rejected(ledger, signer, sleeps):
    with pytest.raises(ValueError, match="empty"):
        make_uploader(ledger, signer, sleeps).upload(split_into_chunks(b"", 3))
    assert ledger.sent == []
