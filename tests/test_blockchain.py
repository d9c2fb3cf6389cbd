"""
Unit tests for Blockchain Ledger module.

Tests:
- Block creation, sealing and decoding
- Genesis block
- Linked append
- Lookups by hash, height and owner
- Chain validation and tamper detection
- Concurrent appends
"""

import json
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace, FrozenInstanceError

import pytest

from starregistry.blockchain.block import Block, StarClaim
from starregistry.blockchain.errors import (
    BlockDecodeError, ChainValidationError, FailureKind
)
from starregistry.blockchain.ledger import (
    Blockchain, IssueKind, ValidationIssue, create_blockchain
)
from starregistry.config import RegistryConfig
from starregistry.core_crypto.hashing import hash_block


class FakeClock:
    """Settable clock for deterministic timestamps."""

    def __init__(self, now: float = 1700000000.75):
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_claim(owner: str, name: str = "Vega") -> StarClaim:
    return StarClaim(
        owner=owner,
        signature="sig",
        message=f"{owner}:1700000000:starRegistry",
        star={'dec': '38 47 01', 'ra': '18h 36m 56s', 'story': name},
    )


class TestBlock:
    """Tests for Block structure."""

    def test_new_block_unattached(self):
        """A new block should only carry its body."""
        block = Block.new({'data': 'x'})
        assert block.height is None
        assert block.time is None
        assert block.previous_block_hash is None
        assert block.hash is None
        assert not block.is_sealed

    def test_body_is_hex_json(self):
        """Body should be hex-encoded compact JSON."""
        block = Block.new({'data': 'Genesis Block'})
        assert bytes.fromhex(block.body) == b'{"data":"Genesis Block"}'

    def test_seal_assigns_fields(self):
        """Sealing should assign every field and a matching hash."""
        block = Block.new({'data': 'x'}).seal(3, 1700000000, 'ab' * 32)
        assert block.height == 3
        assert block.time == 1700000000
        assert block.previous_block_hash == 'ab' * 32
        assert block.hash == hash_block(3, 1700000000, 'ab' * 32, block.body)
        assert block.validate()

    def test_seal_returns_new_block(self):
        """Sealing should leave the candidate untouched."""
        candidate = Block.new({'data': 'x'})
        candidate.seal(1, 1, None)
        assert not candidate.is_sealed

    def test_block_immutable(self):
        """Block should be immutable (frozen)."""
        block = Block.new({'data': 'x'}).seal(0, 0, None)
        with pytest.raises(FrozenInstanceError):
            block.body = "00"

    def test_unsealed_block_invalid(self):
        """An unsealed block should not self-validate."""
        assert not Block.new({'data': 'x'}).validate()

    def test_validate_detects_body_change(self):
        """Changing the body should break self-validation."""
        block = Block.new({'data': 'x'}).seal(1, 1, 'ab' * 32)
        forged = replace(block, body=Block.new({'data': 'y'}).body)
        assert not forged.validate()

    def test_genesis_has_no_star_data(self):
        """Decoding the genesis block should fail."""
        genesis = Block.new({'data': 'Genesis Block'}).seal(0, 0, None)
        with pytest.raises(BlockDecodeError) as exc:
            genesis.get_bdata()
        assert exc.value.kind == FailureKind.DECODE_FAILURE
        assert exc.value.height == 0

    def test_get_bdata(self):
        """Decoding should return the original data."""
        claim = make_claim("1A2b3C")
        block = Block.for_star(claim).seal(1, 1, 'ab' * 32)
        assert block.get_bdata() == claim.to_dict()
        assert block.get_star() == claim

    def test_undecodable_body(self):
        """A body that is not hex JSON should raise BlockDecodeError."""
        block = Block(body="zz-not-hex").seal(1, 1, 'ab' * 32)
        with pytest.raises(BlockDecodeError):
            block.get_bdata()

    def test_non_object_body(self):
        """A JSON body that is not an object should raise BlockDecodeError."""
        block = Block.new(["a", "list"]).seal(1, 1, 'ab' * 32)
        with pytest.raises(BlockDecodeError):
            block.get_bdata()

    def test_incomplete_claim(self):
        """An object body without claim fields should not decode as a star."""
        block = Block.new({'owner': 'x'}).seal(1, 1, 'ab' * 32)
        assert block.get_bdata() == {'owner': 'x'}
        with pytest.raises(BlockDecodeError):
            block.get_star()

    def test_dict_roundtrip(self):
        """Block serialization should preserve every field."""
        block = Block.for_star(make_claim("1A2b3C")).seal(2, 5, 'cd' * 32)
        assert Block.from_dict(block.to_dict()) == block

    def test_non_ascii_hash_invalid(self):
        """A non-ASCII stored hash should fail self-validation, not raise."""
        block = Block.new({'data': 'x'}).seal(1, 1, 'ab' * 32)
        assert not replace(block, hash='\u00e9' * 64).validate()

    def test_str(self):
        """String form should show height, hash prefix and link."""
        block = Block.new({'data': 'x'}).seal(1, 5, 'ab' * 32)
        text = str(block)
        assert text.startswith("Block #1\n")
        assert f"  Hash: {block.hash[:16]}..." in text
        assert "  Prev: abababababababab..." in text
        assert text.endswith("  Time: 5")

    def test_str_genesis(self):
        """Genesis has no previous hash to show."""
        genesis = Block.new({'data': 'Genesis Block'}).seal(0, 0, None)
        assert "  Prev: -..." in str(genesis)


class TestGenesis:
    """Tests for chain initialization."""

    def test_genesis_block_created(self):
        """Blockchain should start with genesis block."""
        bc = Blockchain()
        assert bc.length == 1
        assert bc.height == 0
        assert bc.genesis.height == 0
        assert bc.genesis.previous_block_hash is None

    def test_genesis_hash_reproducible(self):
        """Genesis hash should be recomputable from its own fields."""
        clock = FakeClock()
        bc = Blockchain(clock=clock)
        genesis = bc.genesis
        assert genesis.time == 1700000000
        assert genesis.hash == hash_block(0, genesis.time, None, genesis.body)

    def test_genesis_sentinel_configurable(self):
        """Genesis body should carry the configured sentinel text."""
        bc = Blockchain(config=RegistryConfig(genesis_data="First Light"))
        assert bc.genesis.decode_body() == {'data': 'First Light'}

    def test_create_blockchain(self):
        """Convenience constructor should seed genesis."""
        bc = create_blockchain()
        assert bc.height == 0
        assert bc.validate() == []


class TestAppend:
    """Tests for linked append."""

    def test_append_links_to_tip(self):
        """New block should link to the previous tip."""
        bc = Blockchain()
        tip = bc.last_block
        block = bc.append(Block.new({'data': 'one'}))
        assert block.height == tip.height + 1
        assert block.previous_block_hash == tip.hash
        assert bc.height == 1
        assert bc.last_block == block

    def test_chain_grows(self):
        """Heights should increase by one per append."""
        bc = Blockchain()
        for i in range(1, 5):
            block = bc.add_star(make_claim("owner", f"star{i}"))
            assert block.height == i
        assert bc.length == 5
        assert bc.height == bc.length - 1

    def test_time_truncated_to_seconds(self):
        """Block time should be whole seconds of the clock."""
        clock = FakeClock(1700000123.999)
        bc = Blockchain(clock=clock)
        block = bc.append(Block.new({'data': 'x'}))
        assert block.time == 1700000123

    def test_sealed_block_rejected(self):
        """Appending an already sealed block should fail."""
        bc = Blockchain()
        with pytest.raises(ValueError):
            bc.append(bc.last_block)

    def test_chain_property_is_copy(self):
        """Mutating the returned chain should not affect the ledger."""
        bc = Blockchain()
        view = bc.chain
        view.clear()
        assert bc.length == 1


class TestQueries:
    """Tests for ledger lookups."""

    def test_find_by_hash(self):
        """Lookup by hash should return the block."""
        bc = Blockchain()
        block = bc.add_star(make_claim("a"))
        assert bc.find_by_hash(block.hash) == block

    def test_find_by_hash_missing(self):
        """Unknown hash should return None."""
        bc = Blockchain()
        assert bc.find_by_hash('00' * 32) is None

    def test_find_by_height(self):
        """Lookup by height should return the block."""
        bc = Blockchain()
        block = bc.add_star(make_claim("a"))
        assert bc.find_by_height(1) == block
        assert bc.find_by_height(0) == bc.genesis

    def test_find_by_height_missing(self):
        """Unknown height should return None."""
        bc = Blockchain()
        assert bc.find_by_height(7) is None
        assert bc.find_by_height(-1) is None

    def test_stars_by_owner(self):
        """Owner query should return only that owner's stars, in order."""
        bc = Blockchain()
        bc.add_star(make_claim("alice", "one"))
        bc.add_star(make_claim("bob", "two"))
        bc.add_star(make_claim("alice", "three"))

        stars = bc.stars_by_owner("alice")
        assert [s.star['story'] for s in stars] == ["one", "three"]
        assert all(s.owner == "alice" for s in stars)

    def test_stars_by_owner_none(self):
        """Unknown owner should yield an empty list."""
        bc = Blockchain()
        bc.add_star(make_claim("alice"))
        assert bc.stars_by_owner("nobody") == []

    def test_lookup_reports_genesis_skip(self):
        """Genesis decode failure should be visible, not hidden."""
        bc = Blockchain()
        bc.add_star(make_claim("alice"))
        lookup = bc.lookup_stars("alice")
        assert len(lookup.stars) == 1
        assert lookup.skipped == 1
        assert lookup.decode_failures[0].block_height == 0
        assert lookup.decode_failures[0].block_hash == bc.genesis.hash

    def test_lookup_skips_non_star_blocks(self):
        """Blocks that are not star claims should be skipped, not abort the scan."""
        bc = Blockchain()
        bc.append(Block.new({'data': 'note'}))
        bc.add_star(make_claim("alice"))
        lookup = bc.lookup_stars("alice")
        assert len(lookup.stars) == 1
        assert [f.block_height for f in lookup.decode_failures] == [0, 1]


class TestValidation:
    """Tests for chain validation and tamper detection."""

    def test_valid_chain(self):
        """Valid chain should report no issues."""
        bc = Blockchain()
        for i in range(3):
            bc.add_star(make_claim("a", str(i)))
        assert bc.validate() == []
        assert bc.is_valid()

    def test_tampered_body_detected(self):
        """Changing a stored block's body should produce a self-hash issue."""
        bc = Blockchain()
        bc.add_star(make_claim("alice"))
        bc.add_star(make_claim("bob"))

        stored = bc._chain[1]
        bc._chain[1] = replace(stored, body=Block.for_star(make_claim("mallory")).body)

        issues = bc.validate()
        assert ValidationIssue(IssueKind.SELF_HASH_MISMATCH, 1, issues[0].detail) in issues
        assert [i.kind for i in issues] == [IssueKind.SELF_HASH_MISMATCH]
        assert not bc.is_valid()

    def test_tampered_genesis_detected(self):
        """Changing the genesis body should be caught by its self-check."""
        bc = Blockchain()
        bc._chain[0] = replace(bc.genesis, body=Block.new({'data': 'Fake'}).body)
        issues = bc.validate()
        assert len(issues) == 1
        assert issues[0].kind == IssueKind.SELF_HASH_MISMATCH
        assert issues[0].block_height == 0

    def test_non_ascii_hash_reported(self):
        """A non-ASCII stored hash should be reported as a self-hash issue."""
        bc = Blockchain()
        bc.add_star(make_claim("alice"))
        bc._chain[1] = replace(bc._chain[1], hash='\u00e9' * 64)

        issues = bc.validate()
        assert [(i.kind, i.block_height) for i in issues] == [
            (IssueKind.SELF_HASH_MISMATCH, 1)
        ]

        with pytest.raises(ChainValidationError) as exc:
            bc.add_star(make_claim("bob"))
        assert exc.value.issues[0].kind == IssueKind.SELF_HASH_MISMATCH

    def test_tampered_previous_hash_detected(self):
        """Rewriting a previous hash should produce a link issue."""
        bc = Blockchain()
        bc.add_star(make_claim("alice"))
        bc.add_star(make_claim("bob"))

        bc._chain[2] = replace(bc._chain[2], previous_block_hash='ff' * 32)

        kinds = {(i.kind, i.block_height) for i in bc.validate()}
        assert (IssueKind.LINK_MISMATCH, 2) in kinds
        assert (IssueKind.SELF_HASH_MISMATCH, 2) in kinds

    def test_previous_hash_pointing_elsewhere(self):
        """Linking to a block that is not the direct predecessor is a link issue."""
        bc = Blockchain()
        bc.add_star(make_claim("alice"))
        bc.add_star(make_claim("bob"))
        bc._chain[2] = replace(bc._chain[2], previous_block_hash=bc.genesis.hash)

        link_issues = [i for i in bc.validate() if i.kind == IssueKind.LINK_MISMATCH]
        assert len(link_issues) == 1
        assert link_issues[0].block_height == 2
        assert "height 0" in link_issues[0].detail

    def test_resealed_block_breaks_successor_link(self):
        """A forged block with a fresh hash should orphan its successor."""
        bc = Blockchain()
        bc.add_star(make_claim("alice"))
        bc.add_star(make_claim("bob"))

        original = bc._chain[1]
        bc._chain[1] = Block.for_star(make_claim("mallory")).seal(
            1, original.time, original.previous_block_hash
        )

        issues = bc.validate()
        assert len(issues) == 1
        assert issues[0].kind == IssueKind.LINK_MISMATCH
        assert issues[0].block_height == 2

    def test_append_on_tampered_chain_fails(self):
        """Append should fail with the issue list when the chain is broken."""
        bc = Blockchain()
        bc.add_star(make_claim("alice"))
        bc._chain[1] = replace(bc._chain[1], body=Block.new({'data': 'x'}).body)

        with pytest.raises(ChainValidationError) as exc:
            bc.add_star(make_claim("bob"))

        assert exc.value.kind == FailureKind.VALIDATION_FAILURE
        assert exc.value.issues[0].kind == IssueKind.SELF_HASH_MISMATCH
        assert exc.value.issues[0].block_height == 1

    def test_issue_to_dict(self):
        """Issues should serialize with their kind value."""
        issue = ValidationIssue(IssueKind.LINK_MISMATCH, 4, "detail")
        assert issue.to_dict() == {
            'kind': 'link_mismatch', 'block_height': 4, 'detail': 'detail'
        }


class TestConcurrency:
    """Tests for serialized appends."""

    def test_concurrent_appends(self):
        """Concurrent appends should produce unique, linked heights."""
        bc = Blockchain()
        n = 40

        with ThreadPoolExecutor(max_workers=8) as pool:
            blocks = list(pool.map(
                lambda i: bc.add_star(make_claim(f"owner{i % 4}", str(i))),
                range(n)
            ))

        assert sorted(b.height for b in blocks) == list(range(1, n + 1))
        chain = bc.chain
        assert len(chain) == n + 1
        assert [b.height for b in chain] == list(range(n + 1))
        for prev, block in zip(chain, chain[1:]):
            assert block.previous_block_hash == prev.hash
        assert bc.validate() == []

    def test_concurrent_reads_during_appends(self):
        """Readers should only ever see fully sealed blocks."""
        bc = Blockchain()

        def writer(i):
            bc.add_star(make_claim("w", str(i)))

        def reader(_):
            return all(b.is_sealed and b.validate() for b in bc.chain)

        with ThreadPoolExecutor(max_workers=8) as pool:
            writes = [pool.submit(writer, i) for i in range(20)]
            reads = [pool.submit(reader, i) for i in range(20)]
            for f in writes:
                f.result()
            assert all(f.result() for f in reads)


class TestExport:
    """Tests for chain snapshots."""

    def test_to_json(self):
        """Snapshot should list every block."""
        bc = Blockchain()
        bc.add_star(make_claim("a"))
        data = json.loads(bc.to_json())
        assert data['height'] == 1
        assert len(data['chain']) == 2
        assert data['chain'][1]['previous_block_hash'] == data['chain'][0]['hash']
