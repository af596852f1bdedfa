"""End-to-end planning tests against in-memory deployed stacks."""

import asyncio

import pytest

from stack_refactor.core.assembly import CloudAssembly, StackSelection
from stack_refactor.core.config_loader import RefactorConfig
from stack_refactor.core.exceptions import ConfigurationError
from stack_refactor.core.provider import InMemoryStackProvider
from stack_refactor.models import Override, RefactorState, StackSelectionStrategy
from stack_refactor.services.refactor import RefactorOrchestrator
from tests.helpers import (
    ACCOUNT,
    BUCKET,
    ENV1,
    ENV2,
    QUEUE,
    RecordingIoHost,
    resource,
    stack,
    template,
)


@pytest.fixture
def orchestrator(provider, io_host):
    return RefactorOrchestrator(provider, io_host)


def _config(**kwargs) -> RefactorConfig:
    kwargs.setdefault("unstable_features", ["refactor"])
    return RefactorConfig(**kwargs)


def _deploy_old_bucket(provider, stack_name="Stack1", logical_id="OldLogicalID", environment=ENV1):
    provider.add_stack(
        environment,
        stack_name,
        template(**{logical_id: resource(BUCKET, f"{stack_name}/{logical_id}/Resource")}),
    )


def _two_bucket_stacks(provider):
    provider.add_stack(
        ENV1,
        "Stack1",
        template(
            CatPhotos=resource(BUCKET, "Stack1/CatPhotos/Resource"),
            DogPhotos=resource(BUCKET, "Stack1/DogPhotos/Resource"),
        ),
    )
    return CloudAssembly(
        [
            stack(
                "Stack1",
                {
                    "MyBucket1553EAA46": resource(BUCKET, "Stack1/MyBucket1/Resource"),
                    "MyBucket2F6D2B1A5": resource(BUCKET, "Stack1/MyBucket2/Resource"),
                },
            )
        ]
    )


@pytest.fixture
def bucket_assembly():
    return CloudAssembly(
        [stack("Stack1", {"MyBucketF68F3FF0": resource(BUCKET, "Stack1/MyBucket/Resource")})]
    )


class TestConfigurationGating:
    """Runs are refused before any work when not allowed."""

    @pytest.mark.asyncio
    async def test_requires_feature_opt_in(self, orchestrator, io_host, bucket_assembly):
        with pytest.raises(
            ConfigurationError,
            match="Unstable feature 'refactor' is not enabled. Please enable it under 'unstable_features'",
        ):
            await orchestrator.refactor(bucket_assembly, RefactorConfig())

        assert io_host.events == []

    @pytest.mark.asyncio
    async def test_execution_is_not_available(self, orchestrator, io_host, bucket_assembly):
        with pytest.raises(ConfigurationError, match="Refactor is not available yet"):
            await orchestrator.refactor(bucket_assembly, _config(dry_run=False))

        assert io_host.events == []

    @pytest.mark.asyncio
    async def test_unknown_override_path_fails_before_any_event(
        self, orchestrator, provider, io_host, bucket_assembly
    ):
        _deploy_old_bucket(provider)
        config = _config(
            overrides=[
                Override(
                    account=ACCOUNT,
                    region="us-east-1",
                    source="Stack1/DoesNotExist",
                    destination="Stack1/MyBucket/Resource",
                )
            ]
        )

        with pytest.raises(ConfigurationError, match="Stack1/DoesNotExist"):
            await orchestrator.refactor(bucket_assembly, config)

        assert io_host.events == []


class TestRefactorPlanning:
    """Planning scenarios."""

    @pytest.mark.asyncio
    async def test_detects_same_resource_in_different_location(
        self, orchestrator, provider, io_host, bucket_assembly
    ):
        _deploy_old_bucket(provider)

        reports = await orchestrator.refactor(bucket_assembly, _config())

        assert [e.level for e in io_host.events] == ["info", "result"]
        result = io_host.events[1]
        assert result.action == "refactor"
        assert result.data["mappings"] == [
            {
                "sourcePath": "Stack1/OldLogicalID/Resource",
                "destinationPath": "Stack1/MyBucket/Resource",
                "type": BUCKET,
            }
        ]
        assert any(
            BUCKET in line
            and line.index("Stack1/OldLogicalID/Resource") < line.index("Stack1/MyBucket/Resource")
            for line in result.message.splitlines()
            if "Stack1/OldLogicalID/Resource" in line
        )
        assert reports[0].state == RefactorState.VALIDATED

    @pytest.mark.asyncio
    async def test_additional_stacks_are_included_in_comparison(self, provider, bucket_assembly):
        _deploy_old_bucket(provider)
        provider.add_stack(
            ENV1, "Stack2", template(Queue=resource(QUEUE, "Stack2/Queue/Resource", retain=False))
        )
        provider.add_stack(
            ENV1,
            "CDKToolkit",
            template(
                CdkBootstrapVersion=resource(
                    "AWS::SSM::Parameter", properties={"Type": "String", "Value": "1"}
                )
            ),
        )

        # Without additional stacks only Stack1 is compared
        host = RecordingIoHost()
        await RefactorOrchestrator(provider, host).refactor(bucket_assembly, _config())
        assert host.results[0].level == "result"
        assert len(host.results[0].data["mappings"]) == 1

        # Including Stack2 adds a deployed resource with no local counterpart
        host = RecordingIoHost()
        reports = await RefactorOrchestrator(provider, host).refactor(
            bucket_assembly, _config(additional_stack_names=["Stack2"])
        )
        assert host.results[0].level == "error"
        assert "A refactor operation cannot add, remove or update resources" in host.results[0].message
        assert reports[0].state == RefactorState.REJECTED

    @pytest.mark.asyncio
    async def test_detects_ambiguous_mappings(self, orchestrator, provider, io_host):
        assembly = _two_bucket_stacks(provider)

        reports = await orchestrator.refactor(assembly, _config())

        result = io_host.results[0]
        assert result.level == "result"
        assert result.data == {
            "ambiguousPaths": [
                [
                    ["Stack1/CatPhotos/Resource", "Stack1/DogPhotos/Resource"],
                    ["Stack1/MyBucket1/Resource", "Stack1/MyBucket2/Resource"],
                ]
            ],
            "mappings": [],
        }
        assert reports[0].state == RefactorState.AMBIGUOUS

    @pytest.mark.asyncio
    async def test_detects_modifications(self, orchestrator, provider, io_host, bucket_assembly):
        provider.add_stack(
            ENV1,
            "Stack1",
            template(
                OldName=resource(BUCKET, "Stack1/OldName/Resource"),
                Queue=resource("AWS::S3::Queue", "Stack1/Queue/Resource"),
            ),
        )

        await orchestrator.refactor(bucket_assembly, _config())

        assert io_host.results[0].level == "error"
        assert io_host.results[0].message.startswith(
            "A refactor operation cannot add, remove or update resources"
        )

    @pytest.mark.asyncio
    async def test_overrides_resolve_ambiguities(self, orchestrator, provider, io_host):
        assembly = _two_bucket_stacks(provider)
        config = _config(
            overrides=[
                {
                    "account": ACCOUNT,
                    "region": "us-east-1",
                    "resources": {"Stack1.CatPhotos": "Stack1.MyBucket1553EAA46"},
                }
            ],
            stacks=StackSelection(
                strategy=StackSelectionStrategy.PATTERN_MATCH, patterns=["Stack1"]
            ),
        )

        await orchestrator.refactor(assembly, config)

        assert io_host.results[0].data == {
            "mappings": [
                {
                    "sourcePath": "Stack1/CatPhotos/Resource",
                    "destinationPath": "Stack1/MyBucket1/Resource",
                    "type": BUCKET,
                },
                {
                    "sourcePath": "Stack1/DogPhotos/Resource",
                    "destinationPath": "Stack1/MyBucket2/Resource",
                    "type": BUCKET,
                },
            ]
        }

    @pytest.mark.asyncio
    async def test_stack_selection_filters_compared_stacks(self, orchestrator, provider, io_host):
        _deploy_old_bucket(provider, logical_id="OldBucketName")
        provider.add_stack(
            ENV1,
            "Stack2",
            template(OldQueueName=resource(QUEUE, "Stack2/OldQueueName/Resource", retain=False)),
        )
        assembly = CloudAssembly(
            [
                stack("Stack1", {"MyBucket": resource(BUCKET, "Stack1/MyBucket/Resource")}),
                stack("Stack2", {"MyQueue": resource(QUEUE, "Stack2/MyQueue/Resource", retain=False)}),
            ]
        )
        config = _config(
            stacks=StackSelection(strategy=StackSelectionStrategy.PATTERN_MATCH, patterns=["Stack1"])
        )

        await orchestrator.refactor(assembly, config)

        assert [m["sourcePath"] for m in io_host.results[0].data["mappings"]] == [
            "Stack1/OldBucketName/Resource"
        ]
        assert all("OldQueueName" not in event.message for event in io_host.events)

    @pytest.mark.asyncio
    async def test_one_set_of_mappings_per_environment(self, orchestrator, provider, io_host):
        _deploy_old_bucket(provider, "Stack1", "OldBucketName", ENV1)
        _deploy_old_bucket(provider, "Stack2", "OldBucketName", ENV2)
        assembly = CloudAssembly(
            [
                stack(
                    "Stack1",
                    {"NewBucket": resource(BUCKET, "Stack1/NewBucketNameInStack1/Resource")},
                    ENV1,
                ),
                stack(
                    "Stack2",
                    {"NewBucket": resource(BUCKET, "Stack2/NewBucketNameInStack2/Resource")},
                    ENV2,
                ),
            ]
        )

        reports = await orchestrator.refactor(assembly, _config())

        assert len(io_host.events) == 4
        assert "aws://123456789012/us-east-1" in io_host.events[0].message
        assert io_host.events[1].data["mappings"] == [
            {
                "sourcePath": "Stack1/OldBucketName/Resource",
                "destinationPath": "Stack1/NewBucketNameInStack1/Resource",
                "type": BUCKET,
            }
        ]
        assert "aws://123456789012/us-east-2" in io_host.events[2].message
        assert io_host.events[3].data["mappings"] == [
            {
                "sourcePath": "Stack2/OldBucketName/Resource",
                "destinationPath": "Stack2/NewBucketNameInStack2/Resource",
                "type": BUCKET,
            }
        ]
        assert [r.environment for r in reports] == [ENV1, ENV2]

    @pytest.mark.asyncio
    async def test_rejection_does_not_stop_other_environments(
        self, orchestrator, provider, io_host
    ):
        provider.add_stack(ENV1, "Stack1", template(Queue=resource(QUEUE, "Stack1/Queue/Resource")))
        _deploy_old_bucket(provider, "Stack2", "OldBucketName", ENV2)
        assembly = CloudAssembly(
            [
                stack("Stack1", {"Bucket": resource(BUCKET, "Stack1/Bucket/Resource")}, ENV1),
                stack("Stack2", {"NewBucket": resource(BUCKET, "Stack2/New/Resource")}, ENV2),
            ]
        )

        reports = await orchestrator.refactor(assembly, _config())

        assert [r.state for r in reports] == [RefactorState.REJECTED, RefactorState.VALIDATED]
        assert [e.level for e in io_host.events] == ["info", "error", "info", "result"]

    @pytest.mark.asyncio
    async def test_cyclic_references_reject_the_environment(self, orchestrator, provider, io_host):
        cyclic = template(
            A=resource(QUEUE, "Stack1/A", {"Peer": {"Ref": "B"}}),
            B=resource(QUEUE, "Stack1/B", {"Peer": {"Ref": "A"}}),
        )
        provider.add_stack(ENV1, "Stack1", cyclic)
        assembly = CloudAssembly(
            [stack("Stack1", {"MyBucket": resource(BUCKET, "Stack1/MyBucket/Resource")})]
        )

        reports = await orchestrator.refactor(assembly, _config())

        assert reports[0].state == RefactorState.REJECTED
        assert "Cyclic reference" in io_host.results[0].message

    @pytest.mark.asyncio
    async def test_unchanged_stack_has_nothing_to_refactor(self, orchestrator, provider, io_host):
        _deploy_old_bucket(provider, logical_id="MyBucket")
        assembly = CloudAssembly(
            [stack("Stack1", {"MyBucket": resource(BUCKET, "Stack1/MyBucket/Resource")})]
        )

        reports = await orchestrator.refactor(assembly, _config())

        assert reports[0].state == RefactorState.VALIDATED
        assert reports[0].mappings == []
        assert io_host.results[0].message == "Nothing to refactor."

    @pytest.mark.asyncio
    async def test_deleted_stacks_are_not_compared(self, orchestrator, provider, io_host):
        provider.add_stack(
            ENV1,
            "Stack1",
            template(OldLogicalID=resource(BUCKET, "Stack1/OldLogicalID/Resource")),
            status="DELETE_COMPLETE",
        )
        assembly = CloudAssembly(
            [stack("Stack1", {"MyBucket": resource(BUCKET, "Stack1/MyBucket/Resource")})]
        )

        reports = await orchestrator.refactor(assembly, _config())

        # The local bucket has no deployed counterpart
        assert reports[0].state == RefactorState.REJECTED

    @pytest.mark.asyncio
    async def test_unprotected_resources_are_flagged(self, orchestrator, provider, io_host):
        provider.add_stack(
            ENV1, "Stack1", template(OldQueue=resource(QUEUE, "Stack1/OldQueue/Resource", retain=False))
        )
        assembly = CloudAssembly(
            [stack("Stack1", {"NewQueue": resource(QUEUE, "Stack1/NewQueue/Resource", retain=False)})]
        )

        await orchestrator.refactor(assembly, _config())

        assert io_host.results[0].data["unprotectedPaths"] == ["Stack1/OldQueue/Resource"]


class TestCollaboratorFailures:
    """Provider errors and cancellation."""

    @pytest.mark.asyncio
    async def test_provider_errors_propagate(self, io_host, bucket_assembly):
        class FailingProvider(InMemoryStackProvider):
            async def list_deployed_stacks(self, environment):
                raise RuntimeError("throttled")

        with pytest.raises(RuntimeError, match="throttled"):
            await RefactorOrchestrator(FailingProvider(), io_host).refactor(
                bucket_assembly, _config()
            )

        assert io_host.events == []

    @pytest.mark.asyncio
    async def test_cancellation_emits_no_report(self, io_host, bucket_assembly):
        started = asyncio.Event()

        class HangingProvider(InMemoryStackProvider):
            async def list_deployed_stacks(self, environment):
                started.set()
                await asyncio.Event().wait()

        task = asyncio.create_task(
            RefactorOrchestrator(HangingProvider(), io_host).refactor(bucket_assembly, _config())
        )
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert io_host.events == []
