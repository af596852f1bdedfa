"""Centralized constants for stack refactoring to eliminate duplicate strings."""

# Feature gating
REFACTOR_FEATURE = "refactor"

# Event fields
REFACTOR_ACTION = "refactor"
ENVIRONMENT_INFO_CODE = "STACK_REFACTOR_I8910"
RESULT_CODE = "STACK_REFACTOR_I8900"
ERROR_CODE = "STACK_REFACTOR_E8900"

# Template keys
RESOURCES = "Resources"
TYPE = "Type"
PROPERTIES = "Properties"
METADATA = "Metadata"
DEPENDS_ON = "DependsOn"
DELETION_POLICY = "DeletionPolicy"
UPDATE_REPLACE_POLICY = "UpdateReplacePolicy"
CDK_PATH_METADATA = "aws:cdk:path"

# Intrinsic functions that may point at another resource
REF = "Ref"
GET_ATT = "Fn::GetAtt"
SUB = "Fn::Sub"

# Retention policies that keep the physical resource when it leaves the template
RETAIN_DELETION_POLICIES = frozenset({"Retain", "RetainExceptOnCreate"})
RETAIN_REPLACE_POLICIES = frozenset({"Retain"})

# Deployed stacks in these states are not part of the comparison
IGNORED_STACK_STATUSES = frozenset({"DELETE_COMPLETE", "REVIEW_IN_PROGRESS"})

# Cloud assembly
ASSEMBLY_MANIFEST = "manifest.json"
STACK_ARTIFACT_TYPE = "aws:cloudformation:stack"
ENVIRONMENT_SCHEME = "aws://"
