# strings that are considered truthy when parsing environment variables
TRUE_STRINGS = ("1", "true", "True")

# log levels accepted by HOTSWAP_LOG
HOTSWAP_LOG_TRACE = "trace"
LOG_LEVELS = ("trace", "debug", "info", "warn", "error", "warning")
TRACE_LOG_LEVELS = [HOTSWAP_LOG_TRACE]

# resource type that marks a nested stack within a template
NESTED_STACK_RESOURCE_TYPE = "AWS::CloudFormation::Stack"

# metadata resource type added by the CDK to every stack, never relevant for hotswapping
CDK_METADATA_RESOURCE_TYPE = "AWS::CDK::Metadata"

# resource type of the outputs of a stack, used when reporting changed outputs
STACK_OUTPUT_RESOURCE_TYPE = "Stack Output"

# maximum number of hotswap operations that are in flight at the same time
MAX_CONCURRENT_HOTSWAPS = 10

# prefix of the user agent component which marks a client call as being issued by a hotswap
HOTSWAP_USER_AGENT_PREFIX = "cdk-hotswap/success-"

# icon used when logging hotswap progress
ICON = "✨"

# defaults for the readiness waiter of hotswap operations
DEFAULT_WAITER_DELAY = 5
DEFAULT_WAITER_MAX_ATTEMPTS = 60

AWS_REGION_US_EAST_1 = "us-east-1"
DEFAULT_PARTITION = "aws"

# metadata key that points to the template file of a nested stack inside the cloud assembly
ASSET_PATH_METADATA_KEY = "aws:asset:path"
