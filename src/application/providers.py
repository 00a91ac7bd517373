"""Catalog of known chat-completion providers and default call parameters."""

from typing import Optional

from domain.models import ModelProvider

MODEL_PROVIDERS: tuple[ModelProvider, ...] = (
    ModelProvider(
        name="OpenAI",
        endpoint="https://api.openai.com/v1/chat/completions",
        models=("gpt-4o", "gpt-4o-mini", "gpt-4.1", "gpt-4.1-mini", "gpt-4.1-nano", "o1", "o1-mini", "o3", "o3-mini", "o4-mini"),
        default_model="gpt-4o",
        docs_link="https://platform.openai.com/docs/api-reference/chat/create",
    ),
    ModelProvider(
        name="Azure OpenAI",
        endpoint="",  # Resource specific, always supplied by the user
        models=("gpt-4o", "gpt-4o-mini", "gpt-4.1", "gpt-5", "gpt-5-mini", "o3-mini", "o4-mini"),
        default_model="gpt-4o",
        docs_link="https://learn.microsoft.com/azure/ai-services/openai/reference",
        client="azure-openai",
    ),
    ModelProvider(
        name="OpenRouter",
        endpoint="https://openrouter.ai/api/v1/chat/completions",
        models=("openai/gpt-4o", "anthropic/claude-sonnet-4", "deepseek/deepseek-r1", "google/gemini-2.5-pro"),
        default_model="openai/gpt-4o",
        docs_link="https://openrouter.ai/docs/api-reference/chat-completion",
        client="openrouter",
    ),
    ModelProvider(
        name="Deepseek",
        endpoint="https://api.deepseek.com/chat/completions",
        models=("deepseek-chat", "deepseek-reasoner"),
        default_model="deepseek-chat",
        docs_link="https://api-docs.deepseek.com/api/create-chat-completion",
    ),
    ModelProvider(
        name="Qwen",
        endpoint="https://dashscope.aliyuncs.com/compatible-mode/v1/chat/completions",
        models=("qwen-plus", "qwen-plus-latest", "qwen-plus-2025-04-28", "qwen-plus-2025-01-25", "deepseek-r1", "deepseek-v3", "deepseek-r1-distill-llama-70b"),
        default_model="qwen-plus-latest",
        docs_link="https://help.aliyun.com/zh/model-studio/use-qwen-by-calling-api",
    ),
    ModelProvider(
        name="Doubao",
        endpoint="https://ark.cn-beijing.volces.com/api/v3/chat/completions",
        models=("doubao-seed-1.6-250615", "doubao-seed-1.6-flash-250615", "doubao-seed-1.6-thinking-250615", "deepseek-v3-250324", "deepseek-r1-250528"),
        default_model="doubao-seed-1.6-250615",
        docs_link="https://www.volcengine.com/docs/82379/1494384",
    ),
    ModelProvider(
        name="Qianfan",
        endpoint="https://qianfan.baidubce.com/v2/chat/completions",
        models=("ernie-4.5-turbo-128k", "ernie-4.5-turbo-32k", "deepseek-v3"),
        default_model="ernie-4.5-turbo-128k",
        docs_link="https://cloud.baidu.com/doc/qianfan-api/s/3m7of64lb",
    ),
    ModelProvider(
        name="XunfeiXinhuo",
        endpoint="https://spark-api-open.xf-yun.com/v1/chat/completions",
        models=("4.0Ultra", "generalv3.5", "max-32k", "generalv3", "pro-128k"),
        default_model="4.0Ultra",
        docs_link="https://www.xfyun.cn/doc/spark/HTTP%E8%B0%83%E7%94%A8%E6%96%87%E6%A1%A3.html",
    ),
    ModelProvider(
        name="Ollama (Local)",
        endpoint="http://localhost:11434/v1/chat/completions",
        models=("qwen3:8b", "deepseek-r1:8b", "llama2", "llama2:13b", "llama2:70b", "codellama", "mistral", "mixtral", "neural-chat", "starling-lm"),
        default_model="qwen3:8b",
        requires_api_key=False,
        docs_link="https://github.com/ollama/ollama/blob/main/docs/openai.md",
    ),
    ModelProvider(
        name="Custom",
        endpoint="",
        models=("custom-model",),
        default_model="custom-model",
        docs_link="",
    ),
)

# Parameters used when no explicit configuration is supplied
DEFAULT_CONFIG = {
    "systemPrompt": "You are a helpful assistant.",
    "temperature": 0.7,
    "maxTokens": 2000,
    "topP": 1.0,
    "frequencyPenalty": 0.0,
    "presencePenalty": 0.0,
    "stream": True,
}

# Providers whose endpoint is user supplied and never defaulted
USER_ENDPOINT_PROVIDERS = frozenset({"Azure OpenAI", "Custom"})


def get_provider(name: str) -> Optional[ModelProvider]:
    """Look up a catalog entry by exact provider name."""
    for provider in MODEL_PROVIDERS:
        if provider.name == name:
            return provider
    return None
