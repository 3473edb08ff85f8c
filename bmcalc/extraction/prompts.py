"""System prompts sent to the extraction gateway (pt-BR)."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from bmcalc.models import PriceItem

SERVICES_PROMPT = """Você é um especialista em OCR e extração de dados de Relatórios Diários de Atividades (RDA/RDO) de obras de construção civil e rodoviárias.

OBJETIVO: extrair as QUANTIDADES DE SERVIÇOS EXECUTADOS do documento e vinculá-las à planilha de preços (BM).
{contractor}
{catalog}

FORMATO DE SAÍDA (JSON):
{{
  "servicos": [
    {{
      "codigo": "código exato da planilha BM ou null",
      "descricaoOriginal": "texto do serviço como está no RDA/RDO",
      "descricaoPlanilha": "descrição da planilha se houve match, senão null",
      "quantidade": 0,
      "unidade": "m, m², m³, kg, un, etc",
      "precoUnitario": 0,
      "localizacao": "km, estaca ou frente onde foi executado",
      "observacao": "observações adicionais",
      "confiancaMatch": "alta, média ou baixa"
    }}
  ],
  "resumoAtividades": "resumo geral das atividades"
}}

REGRAS:
1. Extraia TODOS os serviços com quantidades.
2. Números devem ser apenas valores numéricos, sem unidade.
3. Se não encontrar match, mantenha codigo e descricaoPlanilha como null.
4. Normalize unidades: metros = m, metros quadrados = m², metros cúbicos = m³.
5. Retorne APENAS JSON válido, sem markdown."""

CATALOG_SECTION = """PLANILHA DE PREÇOS/BM DISPONÍVEL:
{lines}

Procure na lista o item com a descrição mais similar e retorne seu CÓDIGO e PREÇO UNITÁRIO."""

NO_CATALOG_SECTION = "NENHUMA PLANILHA DE PREÇOS CARREGADA: extraia os dados sem preços."

REPORT_PROMPT = """Você é um especialista em extração de dados de relatórios diários de atividades (RDA) de obras de construção civil.

Extraia TODAS as atividades do texto no formato:
{
  "atividades": [
    {
      "data": "YYYY-MM-DD",
      "diaSemana": "SEGUNDA-FEIRA|...|DOMINGO",
      "fiscal": "nome do fiscal",
      "contratada": "empresa/equipe",
      "obra": "identificação da obra",
      "frenteTrabalho": "local específico (km, trecho)",
      "condicaoClimatica": "ensolarado, nublado, chuvoso ou parcialmente nublado",
      "efetivoTotal": 0,
      "equipamentos": 0,
      "atividades": "descrição completa",
      "observacoes": "observações"
    }
  ]
}

REGRAS:
- Converta datas DD/MM/AA ou DD/MM/AAAA para YYYY-MM-DD.
- Separe cada atividade distinta em um objeto.
- efetivoTotal e equipamentos são contagens numéricas.
- Use null quando não houver informação.
- Retorne APENAS JSON válido, sem markdown."""

PRICE_SHEET_PROMPT = """Você é um especialista em extrair dados de planilhas de preços de serviços de obras/construção civil.

TAREFA: extrair todos os itens de preço do documento.

FORMATO DE SAÍDA (JSON):
{
  "items": [
    {
      "codigo": "BSO-01",
      "descricao": "Revestimento em argamassa",
      "unidade": "m²",
      "precoUnitario": 45.50,
      "categoria": "Pavimentação",
      "fonte": "DER-SP"
    }
  ]
}

REGRAS:
1. Extraia TODOS os itens de preço visíveis no documento.
2. Código: mantenha o formato original (ex: BSO-01, PAV-02, TER-001).
3. Unidade: m, m², m³, kg, un, t, h, etc.
4. Preço unitário: valor numérico, sem R$. Se não encontrar preço, use 0.
5. Fonte: identifique se é DER, DNIT, SICRO, SINAPI ou outro.
6. Ignore cabeçalhos, logos e rodapés.
7. Retorne APENAS o JSON, sem explicações."""


def catalog_lines(items: Iterable[PriceItem]) -> str:
    return "\n".join(
        f"- CÓDIGO: {item.code} | DESCRIÇÃO: {item.description} | "
        f"UNIDADE: {item.unit} | PREÇO: R$ {item.unit_price:.2f}"
        for item in items
    )


def services_prompt(items: list[PriceItem], context: Mapping[str, str]) -> str:
    contractor = context.get("contractor")
    catalog = (
        CATALOG_SECTION.format(lines=catalog_lines(items)) if items else NO_CATALOG_SECTION
    )
    return SERVICES_PROMPT.format(
        contractor=f"\nCONTRATADA DO RDA: {contractor}" if contractor else "",
        catalog=catalog,
    )


def context_block(context: Mapping[str, str]) -> str:
    labels = {
        "date": "Data",
        "contractor": "Contratada",
        "fiscal": "Fiscal",
        "job_site": "Obra",
        "work_front": "Frente",
    }
    lines = [f"- {label}: {context.get(key) or 'N/A'}" for key, label in labels.items()]
    return "Contexto do documento:\n" + "\n".join(lines)
