CODE_PROMPT = (
    "Generate code for the following request. "
    "Only provide the code without any explanations: {prompt}"
)


def build_code_prompt(prompt: str) -> str:
    return CODE_PROMPT.format(prompt=prompt)
