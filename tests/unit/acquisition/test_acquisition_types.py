"""Unit tests for acquisition data types."""

import pytest

from apidemo.acquisition.types import (
    ChannelDescriptor,
    ChannelId,
    FixSource,
    LocationProvider,
    PositionFix,
    Reading,
    Snapshot,
)


class TestChannelId:
    """Test channel metadata and coercion."""

    @pytest.mark.parametrize(
        "channel_id,arity",
        [
            (ChannelId.ACCEL, 3),
            (ChannelId.GYRO, 3),
            (ChannelId.LIGHT, 1),
            (ChannelId.MAGNETOMETER, 3),
            (ChannelId.PRESSURE, 1),
        ],
    )
    def test_arity(self, channel_id, arity):
        assert channel_id.arity == arity

    def test_units(self):
        assert ChannelId.LIGHT.unit == "lx"
        assert ChannelId.ACCEL.unit == "m/s^2"

    def test_coerce_accepts_value_and_name(self):
        assert ChannelId.coerce("accelerometer") is ChannelId.ACCEL
        assert ChannelId.coerce(" Light ") is ChannelId.LIGHT
        assert ChannelId.coerce("gyro") is ChannelId.GYRO
        assert ChannelId.coerce(ChannelId.PRESSURE) is ChannelId.PRESSURE

    def test_coerce_rejects_unknown(self):
        with pytest.raises(KeyError):
            ChannelId.coerce("sonar")


class TestReading:
    """Test reading validation."""

    def test_values_are_coerced_to_floats(self):
        reading = Reading(ChannelId.ACCEL, 1.0, [1, 2, 3])

        assert reading.values == (1.0, 2.0, 3.0)
        assert all(isinstance(v, float) for v in reading.values)

    def test_wrong_arity_is_rejected(self):
        with pytest.raises(ValueError):
            Reading(ChannelId.LIGHT, 1.0, (1.0, 2.0))

    def test_reading_is_immutable(self):
        reading = Reading(ChannelId.LIGHT, 1.0, (1.0,))

        with pytest.raises(AttributeError):
            reading.timestamp_monotonic = 2.0


class TestSnapshot:
    """Test the immutable snapshot mapping."""

    def test_empty_snapshot(self):
        snapshot = Snapshot()

        assert len(snapshot) == 0
        assert snapshot.sequence == 0
        assert snapshot.to_dict() == {"sequence": 0, "channels": {}}

    def test_mapping_access_keeps_insertion_order(self):
        light = Reading(ChannelId.LIGHT, 1.0, (10.0,))
        accel = Reading(ChannelId.ACCEL, 2.0, (0.0, 0.0, 9.8))
        snapshot = Snapshot([(ChannelId.LIGHT, light), (ChannelId.ACCEL, accel)], sequence=4)

        assert list(snapshot) == [ChannelId.LIGHT, ChannelId.ACCEL]
        assert snapshot[ChannelId.ACCEL] is accel
        assert ChannelId.GYRO not in snapshot
        assert snapshot.get(ChannelId.GYRO) is None
        assert snapshot.sequence == 4

    def test_snapshot_has_no_mutators(self):
        snapshot = Snapshot()

        with pytest.raises(TypeError):
            snapshot[ChannelId.LIGHT] = Reading(ChannelId.LIGHT, 1.0, (1.0,))

    def test_source_entries_are_copied(self):
        entries = {ChannelId.LIGHT: Reading(ChannelId.LIGHT, 1.0, (1.0,))}
        snapshot = Snapshot(entries.items())

        entries.clear()

        assert len(snapshot) == 1


class TestDescriptorsAndFixes:
    """Test serialisation helpers."""

    def test_missing_descriptor_is_unavailable(self):
        descriptor = ChannelDescriptor.missing(ChannelId.PROXIMITY)

        assert descriptor.available is False
        assert descriptor.to_dict()["channel"] == "proximity"

    def test_with_source_returns_copy(self):
        fix = PositionFix(1.0, 2.0, LocationProvider.GPS)

        cached = fix.with_source(FixSource.CACHED)

        assert cached.source is FixSource.CACHED
        assert fix.source is FixSource.LIVE
        assert fix.with_source(FixSource.LIVE) is fix

    def test_fix_to_dict_omits_unknown_fields(self):
        fix = PositionFix(1.0, 2.0, LocationProvider.NETWORK, accuracy_m=30.0)

        assert fix.to_dict() == {
            "latitude": 1.0,
            "longitude": 2.0,
            "provider": "network",
            "source": "live",
            "accuracy_m": 30.0,
        }
