"""Tests for the Redis duel registry: lifecycle, race-safe accept, opt-out and cooldown."""

import asyncio

from slotduel.crud import ReadData
from slotduel.keys import claim_key
from slotduel.models.dc_models import AcceptFailureReason


class TestCreateDuel:
    async def test_create_and_read_back(self, registry):
        assert await registry.create_duel("Alice", "Bob", 200)
        duel = await registry.get_duel("alice")
        assert duel.challenger == "alice"
        assert duel.target == "bob"
        assert duel.amount == 200
        assert duel.created_at == registry.now_ms()

    async def test_stored_json_uses_created_at_alias(self, registry, redis):
        await registry.create_duel("alice", "bob", 200, created_at=123)
        assert '"createdAt":123' in await redis.get("duel:alice")

    async def test_pending_challenge_is_not_overwritten(self, registry):
        assert await registry.create_duel("alice", "bob", 200)
        assert not await registry.create_duel("alice", "carol", 300)
        assert (await registry.get_duel("alice")).target == "bob"

    async def test_expired_slot_can_be_reused(self, registry, clock):
        await registry.create_duel("alice", "bob", 200)
        clock.advance(61)
        assert await registry.create_duel("alice", "carol", 300)
        assert (await registry.get_duel("alice")).target == "carol"

    async def test_malformed_slot_is_replaced(self, registry, redis):
        await redis.set("duel:alice", "{not json", ex=70)
        assert await registry.create_duel("alice", "bob", 200)
        assert (await registry.get_duel("alice")).target == "bob"

    async def test_self_challenge_and_low_amount_are_refused(self, registry):
        assert not await registry.create_duel("alice", "ALICE", 200)
        assert not await registry.create_duel("alice", "bob", 99)
        assert not await registry.has_active_duel("alice")

    async def test_key_carries_ttl(self, registry, redis):
        await registry.create_duel("alice", "bob", 200)
        assert 0 < await redis.ttl("duel:alice") <= 70


class TestLookup:
    async def test_expired_duel_is_deleted_on_read(self, registry, redis, clock):
        await registry.create_duel("alice", "bob", 200)
        clock.advance(60.5)
        assert await registry.get_duel("alice") is None
        assert not await redis.exists("duel:alice")

    async def test_find_incoming_duel(self, registry):
        await registry.create_duel("alice", "bob", 200)
        await registry.create_duel("carol", "dave", 300)
        incoming = await registry.find_incoming_duel("BOB")
        assert incoming.challenger == "alice"
        assert await registry.find_incoming_duel("erin") is None

    async def test_scan_removes_expired_and_skips_claim_markers(self, registry, redis, clock):
        await registry.create_duel("alice", "bob", 200)
        clock.advance(30)
        await registry.create_duel("carol", "bob", 300)
        await redis.set(claim_key("zed", 1), "1")
        clock.advance(31)

        incoming = await registry.find_incoming_duel("bob")
        assert incoming.challenger == "carol"
        assert not await redis.exists("duel:alice")

    async def test_corrupt_record_is_treated_as_absent(self, registry, redis, caplog):
        await redis.set("duel:alice", "{not json")
        assert await registry.get_duel("alice") is None
        assert await registry.find_incoming_duel("bob") is None
        assert "Malformed duel record" in caplog.text

    async def test_decline_removes_the_challenge(self, registry):
        await registry.create_duel("alice", "bob", 200)
        assert await registry.decline_duel("alice")
        assert not await registry.decline_duel("alice")
        assert await registry.get_duel("alice") is None


class TestAcceptDuel:
    async def test_accept_success(self, registry, redis):
        await registry.create_duel("alice", "bob", 200)
        duel = await registry.get_duel("alice")

        result = await registry.accept_duel("alice")
        assert result.success
        assert result.duel == duel
        assert not await redis.exists("duel:alice")
        assert 0 < await redis.ttl(claim_key("alice", duel.created_at)) <= 10

    async def test_not_found(self, registry):
        result = await registry.accept_duel("alice")
        assert not result.success
        assert result.reason == AcceptFailureReason.not_found

    async def test_expired(self, registry, redis, clock):
        await registry.create_duel("alice", "bob", 200)
        clock.advance(61)
        result = await registry.accept_duel("alice")
        assert result.reason == AcceptFailureReason.expired
        assert not await redis.exists("duel:alice")

    async def test_already_claimed(self, registry, redis):
        await registry.create_duel("alice", "bob", 200)
        duel = await registry.get_duel("alice")
        await redis.set(claim_key("alice", duel.created_at), "1")

        result = await registry.accept_duel("alice")
        assert result.reason == AcceptFailureReason.already_claimed
        assert await redis.exists("duel:alice")

    async def test_marker_of_an_older_instance_does_not_block(self, registry, redis, clock):
        await redis.set(claim_key("alice", registry.now_ms()), "1", ex=10)
        clock.advance(1)
        await registry.create_duel("alice", "bob", 200)
        assert (await registry.accept_duel("alice")).success

    async def test_failed_delete_reports_race_condition(self, registry, redis, monkeypatch):
        await registry.create_duel("alice", "bob", 200)

        async def delete_nothing(*keys):
            return 0

        monkeypatch.setattr(redis, "delete", delete_nothing)
        result = await registry.accept_duel("alice")
        assert not result.success
        assert result.reason == AcceptFailureReason.race_condition

    async def test_concurrent_accepts_have_exactly_one_winner(self, registry):
        await registry.create_duel("alice", "bob", 200)
        results = await asyncio.gather(*(registry.accept_duel("alice") for _ in range(10)))

        assert sum(result.success for result in results) == 1
        losers = {result.reason for result in results if not result.success}
        assert losers <= {
            AcceptFailureReason.already_claimed,
            AcceptFailureReason.race_condition,
            AcceptFailureReason.not_found,
        }

    async def test_accept_finishing_after_another_read_has_one_winner(
        self, registry, redis, monkeypatch
    ):
        """The first accept completes between the second accept's read and its marker check."""
        await registry.create_duel("alice", "bob", 200)
        read_challenge = redis.get
        first_results = []

        async def get_then_let_other_accept_finish(key):
            value = await read_challenge(key)
            if key == "duel:alice" and not first_results:
                first_results.append(None)
                first_results[0] = await registry.accept_duel("alice")
            return value

        monkeypatch.setattr(redis, "get", get_then_let_other_accept_finish)
        second = await registry.accept_duel("alice")

        assert first_results[0].success
        assert not second.success
        assert second.reason == AcceptFailureReason.already_claimed

    async def test_accept_that_removed_nothing_loses(self, registry, redis, monkeypatch):
        """Even without the winner's marker, deleting an already removed challenge is not a win."""
        await registry.create_duel("alice", "bob", 200)
        duel = await registry.get_duel("alice")
        read_challenge = redis.get
        first_results = []

        async def get_then_let_other_accept_finish(key):
            value = await read_challenge(key)
            if key == "duel:alice" and not first_results:
                first_results.append(None)
                first_results[0] = await registry.accept_duel("alice")
                # The winner's marker ran out before this request reached its check.
                await redis.delete(claim_key("alice", duel.created_at))
            return value

        monkeypatch.setattr(redis, "get", get_then_let_other_accept_finish)
        second = await registry.accept_duel("alice")

        assert first_results[0].success
        assert not second.success
        assert second.reason == AcceptFailureReason.race_condition
        assert not await redis.exists(claim_key("alice", duel.created_at))

    async def test_corrupt_record_reports_error(self, registry, redis):
        await redis.set("duel:alice", "garbage")
        assert (await registry.accept_duel("alice")).reason == AcceptFailureReason.error


class TestOptOut:
    async def test_toggle(self, registry, redis):
        assert not await registry.is_opted_out("bob")
        await registry.set_opt_out("Bob", True)
        assert await registry.is_opted_out("bob")
        assert await redis.get("duel_optout:bob") == "true"
        await registry.set_opt_out("bob", False)
        assert not await registry.is_opted_out("bob")

    async def test_mirrors_existing_user_row(self, registry, balance_store, Session):
        await balance_store.set_balance("bob", 500)
        await registry.set_opt_out("bob", True)
        async with Session() as session:
            user = await ReadData.read_user_data("bob", session)
        assert user.duel_opt_out
        assert user.balance == 500

    async def test_does_not_create_user_rows(self, registry, Session):
        await registry.set_opt_out("ghost", True)
        async with Session() as session:
            assert await ReadData.read_user_data("ghost", session) is None


class TestCooldown:
    async def test_remaining_rounds_up(self, registry, clock):
        assert await registry.get_cooldown_remaining("alice") == 0
        await registry.set_cooldown("alice")
        assert await registry.get_cooldown_remaining("alice") == 30
        clock.advance(10.5)
        assert await registry.get_cooldown_remaining("alice") == 20
        clock.advance(20)
        assert await registry.get_cooldown_remaining("alice") == 0

    async def test_corrupt_value_counts_as_no_cooldown(self, registry, redis, caplog):
        await redis.set("duel_cooldown:alice", "soon")
        assert await registry.get_cooldown_remaining("alice") == 0
        assert "Corrupt duel cooldown" in caplog.text
