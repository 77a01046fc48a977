"""Unit tests for the fluent WorkflowBuilder API.

Tests cover:
- Adding each step variant and fluent chaining
- Fail-fast errors for unknown and duplicate step ids (with suggestions)
- Deferred checking of dependency targets (forward references)
- Snapshot isolation of build()
- Alternate constructors (from_config, from_template)
"""

import pytest

from workflow_builder.api.builders import WorkflowBuilder
from workflow_builder.api.exceptions import (
    BuildError,
    DuplicateStepError,
    StepNotFoundError,
    TemplateNotFoundError,
)
from workflow_builder.types import (
    ConditionalStep,
    FeatureStep,
    ParallelStep,
    RetryPolicy,
    SequentialStep,
)


@pytest.mark.unit
class TestWorkflowBuilderCore:
    """Test builder construction and step addition."""

    def test_create_builder(self) -> None:
        """Test creating a builder with workflow metadata."""
        builder = WorkflowBuilder(
            "wf", "Workflow", description="Test", timeout=30000, metadata={"team": "core"}
        )
        config = builder.build()

        assert config.id == "wf"
        assert config.name == "Workflow"
        assert config.description == "Test"
        assert config.timeout == 30000
        assert config.metadata == {"team": "core"}
        assert config.steps == ()

    def test_retry_policy_from_mapping(self) -> None:
        """Test a retry policy mapping is validated into RetryPolicy."""
        builder = WorkflowBuilder("wf", "Workflow", retry_policy={"max_attempts": 5})

        assert isinstance(builder.retry_policy, RetryPolicy)
        assert builder.retry_policy.max_attempts == 5

    def test_invalid_retry_policy_raises(self) -> None:
        """Test an invalid retry policy raises BuildError."""
        with pytest.raises(BuildError, match="Invalid retry policy"):
            WorkflowBuilder("wf", "Workflow", retry_policy={"max_attempts": -1})

    def test_non_positive_workflow_timeout_raises(self) -> None:
        """Test a non-positive default timeout raises BuildError."""
        with pytest.raises(BuildError, match="must be > 0"):
            WorkflowBuilder("wf", "Workflow", timeout=0)

    def test_fluent_chaining_returns_builder(self) -> None:
        """Test every add/mutate method returns the same builder."""
        builder = WorkflowBuilder("wf", "Workflow")

        result = (
            builder.add_feature_step("a", "A", "f", "op")
            .add_feature_step("b", "B", "f", "op")
            .add_dependency("b", "a")
            .set_timeout("a", 5000)
            .set_retries("a", 2)
            .add_fallback("a", {"type": "feature-call", "id": "a-backup", "name": "Backup"})
        )

        assert result is builder

    def test_add_each_variant(self) -> None:
        """Test each add method appends the matching step variant in order."""
        config = (
            WorkflowBuilder("wf", "Workflow")
            .add_feature_step("f", "Feature", "feat", "op", {"x": 1})
            .add_parallel_step(
                "p", "Parallel", [FeatureStep(id="p1", name="P1", feature="f", operation="op")]
            )
            .add_sequential_step(
                "s",
                "Sequential",
                [{"type": "feature-call", "id": "s1", "name": "S1"}],
            )
            .add_conditional_step(
                "c",
                "Conditional",
                {"type": "equals", "field": "mode", "value": "fast"},
                if_true=[{"type": "feature-call", "id": "c1", "name": "C1"}],
            )
            .build()
        )

        assert [step.id for step in config.steps] == ["f", "p", "s", "c"]
        assert isinstance(config.steps[0], FeatureStep)
        assert isinstance(config.steps[1], ParallelStep)
        assert isinstance(config.steps[2], SequentialStep)
        assert isinstance(config.steps[3], ConditionalStep)
        assert config.steps[3].if_false == []

    def test_feature_step_without_names_is_accepted(self) -> None:
        """Test missing feature/operation names are deferred to validation."""
        config = WorkflowBuilder("wf", "Workflow").add_feature_step("x", "X", None, "op").build()

        assert config.steps[0].feature is None

    def test_invalid_condition_raises(self) -> None:
        """Test an unknown condition type raises BuildError."""
        with pytest.raises(BuildError, match="Invalid step 'c'"):
            WorkflowBuilder("wf", "Workflow").add_conditional_step(
                "c", "C", {"type": "matches", "field": "x"}, if_true=[]
            )

    def test_invalid_child_raises(self) -> None:
        """Test an invalid child definition names the parent step."""
        with pytest.raises(BuildError, match="Invalid child step in 'p'"):
            WorkflowBuilder("wf", "Workflow").add_parallel_step(
                "p", "P", [{"type": "unknown", "id": "x", "name": "X"}]
            )

    def test_add_step_from_mapping(self) -> None:
        """Test add_step selects the variant from the type tag."""
        config = (
            WorkflowBuilder("wf", "Workflow")
            .add_step({"type": "parallel", "id": "p", "name": "P", "parallel": []})
            .build()
        )

        assert isinstance(config.steps[0], ParallelStep)

    def test_add_step_invalid_definition_raises(self) -> None:
        """Test add_step wraps model validation errors in BuildError."""
        with pytest.raises(BuildError, match="Invalid step definition"):
            WorkflowBuilder("wf", "Workflow").add_step({"type": "feature-call", "id": "x"})


@pytest.mark.unit
class TestDuplicateIds:
    """Test id collisions are rejected at add time."""

    def test_duplicate_top_level_id(self) -> None:
        """Test reusing a top-level id raises DuplicateStepError."""
        builder = WorkflowBuilder("wf", "Workflow").add_feature_step("a", "A", "f", "op")

        with pytest.raises(DuplicateStepError, match="Step ID 'a' already exists") as exc_info:
            builder.add_feature_step("a", "Again", "f", "op")

        assert exc_info.value.step_id == "a"
        assert len(builder.build().steps) == 1

    def test_duplicate_nested_id(self) -> None:
        """Test a child id colliding with an existing step is rejected."""
        builder = WorkflowBuilder("wf", "Workflow").add_feature_step("a", "A", "f", "op")

        with pytest.raises(DuplicateStepError):
            builder.add_parallel_step(
                "p", "P", [{"type": "feature-call", "id": "a", "name": "Child"}]
            )

    def test_duplicate_within_one_composite(self) -> None:
        """Test repeated ids inside one composite step are rejected."""
        with pytest.raises(DuplicateStepError):
            WorkflowBuilder("wf", "Workflow").add_sequential_step(
                "s",
                "S",
                [
                    {"type": "feature-call", "id": "x", "name": "X"},
                    {"type": "feature-call", "id": "x", "name": "X again"},
                ],
            )

    def test_new_step_reusing_nested_id(self) -> None:
        """Test a top-level step cannot reuse a nested child's id."""
        builder = WorkflowBuilder("wf", "Workflow").add_parallel_step(
            "p", "P", [{"type": "feature-call", "id": "child", "name": "Child"}]
        )

        with pytest.raises(DuplicateStepError):
            builder.add_feature_step("child", "Child", "f", "op")


@pytest.mark.unit
class TestStepMutation:
    """Test add_dependency, add_fallback, set_timeout and set_retries."""

    def test_add_dependency_unknown_step_raises(self) -> None:
        """Test add_dependency on a missing step fails fast."""
        builder = WorkflowBuilder("wf", "Workflow")

        with pytest.raises(StepNotFoundError) as exc_info:
            builder.add_dependency("missing", "a")

        assert exc_info.value.step_id == "missing"

    def test_add_dependency_forward_reference_allowed(self) -> None:
        """Test depending on a not-yet-added step does not fail."""
        builder = (
            WorkflowBuilder("wf", "Workflow")
            .add_feature_step("b", "B", "f", "op")
            .add_dependency("b", "a")
        )

        assert builder.build().steps[0].dependencies == ["a"]

    def test_add_dependency_accepts_multiple_ids(self) -> None:
        """Test add_dependency appends a list of ids in order."""
        config = (
            WorkflowBuilder("wf", "Workflow")
            .add_feature_step("c", "C", "f", "op", dependencies=["a"])
            .add_dependency("c", ["b", "d"])
            .build()
        )

        assert config.steps[0].dependencies == ["a", "b", "d"]

    def test_add_dependency_on_nested_step(self) -> None:
        """Test nested children can be looked up by id."""
        config = (
            WorkflowBuilder("wf", "Workflow")
            .add_feature_step("root", "Root", "f", "op")
            .add_parallel_step("p", "P", [{"type": "feature-call", "id": "child", "name": "C"}])
            .add_dependency("child", "root")
            .build()
        )

        assert config.steps[1].parallel[0].dependencies == ["root"]

    def test_unknown_step_suggests_close_match(self) -> None:
        """Test lookup failures suggest similar ids."""
        builder = WorkflowBuilder("wf", "Workflow").add_feature_step(
            "fetch-data", "Fetch", "f", "op"
        )

        with pytest.raises(StepNotFoundError, match="Did you mean: 'fetch-data'"):
            builder.set_timeout("fetch-dta", 5000)

    def test_set_timeout(self) -> None:
        """Test set_timeout overrides the step timeout."""
        config = (
            WorkflowBuilder("wf", "Workflow")
            .add_feature_step("a", "A", "f", "op")
            .set_timeout("a", 45000)
            .build()
        )

        assert config.steps[0].timeout == 45000

    def test_set_timeout_non_positive_raises(self) -> None:
        """Test set_timeout rejects zero."""
        builder = WorkflowBuilder("wf", "Workflow").add_feature_step("a", "A", "f", "op")

        with pytest.raises(BuildError, match="must be > 0"):
            builder.set_timeout("a", 0)

    def test_set_retries(self) -> None:
        """Test set_retries overrides the retry count (zero allowed)."""
        config = (
            WorkflowBuilder("wf", "Workflow")
            .add_feature_step("a", "A", "f", "op")
            .set_retries("a", 0)
            .build()
        )

        assert config.steps[0].retries == 0

    def test_set_retries_negative_raises(self) -> None:
        """Test set_retries rejects negative values."""
        builder = WorkflowBuilder("wf", "Workflow").add_feature_step("a", "A", "f", "op")

        with pytest.raises(BuildError, match="must be >= 0"):
            builder.set_retries("a", -1)

    def test_add_fallback(self) -> None:
        """Test add_fallback attaches a parsed fallback step."""
        config = (
            WorkflowBuilder("wf", "Workflow")
            .add_feature_step("a", "A", "f", "op")
            .add_fallback(
                "a",
                {
                    "type": "feature-call",
                    "id": "a-static",
                    "name": "Static",
                    "feature": "static",
                    "operation": "serve",
                },
            )
            .build()
        )

        assert isinstance(config.steps[0].fallback, FeatureStep)
        assert config.steps[0].fallback.id == "a-static"

    def test_add_fallback_unknown_step_raises(self) -> None:
        """Test add_fallback on a missing step fails fast."""
        with pytest.raises(StepNotFoundError):
            WorkflowBuilder("wf", "Workflow").add_fallback(
                "missing", {"type": "feature-call", "id": "x", "name": "X"}
            )

    def test_add_fallback_invalid_definition_raises(self) -> None:
        """Test an invalid fallback definition raises BuildError."""
        builder = WorkflowBuilder("wf", "Workflow").add_feature_step("a", "A", "f", "op")

        with pytest.raises(BuildError, match="Invalid fallback for step 'a'"):
            builder.add_fallback("a", {"type": "feature-call"})

    def test_fallback_ids_are_not_graph_nodes(self) -> None:
        """Test fallback ids are not reachable through step lookup."""
        builder = (
            WorkflowBuilder("wf", "Workflow")
            .add_feature_step("a", "A", "f", "op")
            .add_fallback("a", {"type": "feature-call", "id": "a-static", "name": "Static"})
        )

        with pytest.raises(StepNotFoundError):
            builder.set_timeout("a-static", 1000)


@pytest.mark.unit
class TestBuildSnapshot:
    """Test build() returns isolated snapshots."""

    def test_snapshot_not_affected_by_later_changes(self) -> None:
        """Test builder changes after build() do not reach the snapshot."""
        builder = WorkflowBuilder("wf", "Workflow").add_feature_step("a", "A", "f", "op")
        config = builder.build()

        builder.set_timeout("a", 5000).add_feature_step("b", "B", "f", "op")

        assert config.steps[0].timeout is None
        assert len(config.steps) == 1

    def test_snapshot_changes_do_not_reach_builder(self) -> None:
        """Test mutating a snapshot's steps leaves the builder untouched."""
        builder = WorkflowBuilder("wf", "Workflow").add_feature_step(
            "a", "A", "f", "op", {"k": "v"}
        )
        config = builder.build()

        config.steps[0].params["k"] = "changed"
        config.steps[0].dependencies.append("x")

        fresh = builder.build()
        assert fresh.steps[0].params == {"k": "v"}
        assert fresh.steps[0].dependencies == []

    def test_metadata_is_copied(self) -> None:
        """Test snapshot metadata is a deep copy."""
        builder = WorkflowBuilder("wf", "Workflow", metadata={"tags": ["a"]})
        config = builder.build()

        config.metadata["tags"].append("b")

        assert builder.build().metadata == {"tags": ["a"]}


@pytest.mark.unit
class TestAlternateConstructors:
    """Test from_config and from_template."""

    def test_from_config_round_trip(self, nested_builder: WorkflowBuilder) -> None:
        """Test re-hydrating a builder from a snapshot reproduces it."""
        config = nested_builder.build()

        rebuilt = WorkflowBuilder.from_config(config).build()

        assert rebuilt == config

    def test_from_config_builder_is_mutable(self, independent_builder: WorkflowBuilder) -> None:
        """Test a re-hydrated builder accepts further mutation."""
        builder = WorkflowBuilder.from_config(independent_builder.build())

        builder.add_dependency("B", "A")

        assert builder.build().steps[1].dependencies == ["A"]

    def test_from_template(self) -> None:
        """Test instantiating a predefined template."""
        config = WorkflowBuilder.from_template(
            "basic-feature", {"featureName": "planner", "operation": "plan"}
        ).build()

        assert config.steps[0].feature == "planner"
        assert config.steps[0].operation == "plan"

    def test_from_unknown_template_raises(self) -> None:
        """Test an unknown template name raises TemplateNotFoundError."""
        with pytest.raises(TemplateNotFoundError, match="not found"):
            WorkflowBuilder.from_template("no-such-template")
