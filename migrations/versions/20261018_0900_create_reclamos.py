"""create_libro_reclamaciones_tables

Revision ID: 20261018_0900_reclamos
Revises:
Create Date: 2026-10-18 09:00:00.000000

Esquema inicial del Libro de Reclamaciones:
- reclamos + contador de códigos por año
- respuestas (una por reclamo), mensajes e historial
- usuarios del panel y auditoría administrativa
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_0900_reclamos'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # =========================================================
    # USUARIOS DEL PANEL
    # =========================================================
    op.create_table(
        'usuarios_admin',
        sa.Column('id', sa.String(length=36), nullable=False, comment='UUID'),
        sa.Column('email', sa.String(length=255), nullable=False, comment='Email normalizado (minúsculas)'),
        sa.Column('nombre_completo', sa.String(length=200), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False, comment='Hash bcrypt'),
        sa.Column('rol', sa.String(length=20), nullable=False, comment='ADMIN / SOPORTE'),
        sa.Column('activo', sa.Boolean(), nullable=False),
        sa.Column('debe_cambiar_password', sa.Boolean(), nullable=False),
        sa.Column('ultimo_acceso', sa.DateTime(timezone=True), nullable=True),
        sa.Column('fecha_creacion', sa.DateTime(timezone=True), nullable=False),
        sa.Column('creado_por', sa.String(length=36), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_usuarios_admin_email', 'usuarios_admin', ['email'], unique=True)

    # =========================================================
    # RECLAMOS
    # =========================================================
    op.create_table(
        'reclamos',

        # Identificación
        sa.Column('id', sa.String(length=36), nullable=False, comment='UUID'),
        sa.Column('codigo_reclamo', sa.String(length=32), nullable=False, comment='PREFIX-YYYY-NNNNN'),
        sa.Column('tipo_solicitud', sa.String(length=10), nullable=False, comment='RECLAMO / QUEJA'),

        # Consumidor
        sa.Column('nombre_completo', sa.String(length=200), nullable=False),
        sa.Column('tipo_documento', sa.String(length=20), nullable=False),
        sa.Column('numero_documento', sa.String(length=20), nullable=False),
        sa.Column('telefono', sa.String(length=20), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('domicilio', sa.String(length=255), nullable=True),
        sa.Column('departamento', sa.String(length=100), nullable=True),
        sa.Column('provincia', sa.String(length=100), nullable=True),
        sa.Column('distrito', sa.String(length=100), nullable=True),

        # Bien contratado y detalle
        sa.Column('tipo_bien', sa.String(length=20), nullable=True, comment='PRODUCTO / SERVICIO'),
        sa.Column('monto_reclamado', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('descripcion_bien', sa.Text(), nullable=False),
        sa.Column('area_queja', sa.String(length=100), nullable=True),
        sa.Column('descripcion_situacion', sa.Text(), nullable=True),
        sa.Column('fecha_incidente', sa.Date(), nullable=False),
        sa.Column('detalle_reclamo', sa.Text(), nullable=False),
        sa.Column('pedido_consumidor', sa.Text(), nullable=False),

        # Procedencia (write-once)
        sa.Column('firma_digital', sa.Text(), nullable=False, comment='Data URL de la imagen'),
        sa.Column('acepta_terminos', sa.Boolean(), nullable=False),
        sa.Column('acepta_copia', sa.Boolean(), nullable=False),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),

        # Tiempos (UTC)
        sa.Column('fecha_registro', sa.DateTime(timezone=True), nullable=False),
        sa.Column('fecha_limite_respuesta', sa.DateTime(timezone=True), nullable=False),
        sa.Column('fecha_respuesta', sa.DateTime(timezone=True), nullable=True),

        # Ciclo de vida
        sa.Column('estado', sa.String(length=20), nullable=False),
        sa.Column('atendido_por', sa.String(length=36), nullable=True),

        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['atendido_por'], ['usuarios_admin.id']),
        sa.CheckConstraint("tipo_solicitud IN ('RECLAMO', 'QUEJA')", name='ck_reclamos_tipo'),
        sa.CheckConstraint(
            "estado IN ('PENDIENTE', 'EN_PROCESO', 'RESUELTO', 'CERRADO')",
            name='ck_reclamos_estado',
        ),
        sa.CheckConstraint('acepta_terminos = true', name='ck_reclamos_terminos'),
        sa.CheckConstraint('monto_reclamado >= 0', name='ck_reclamos_monto'),
    )
    op.create_index('ix_reclamos_codigo_reclamo', 'reclamos', ['codigo_reclamo'], unique=True)
    op.create_index('ix_reclamos_numero_documento', 'reclamos', ['numero_documento'])
    op.create_index('ix_reclamos_fecha_registro', 'reclamos', ['fecha_registro'])
    op.create_index('ix_reclamos_estado', 'reclamos', ['estado'])

    op.create_table(
        'secuencias_reclamo',
        sa.Column('anio', sa.Integer(), nullable=False, comment='Año UTC del registro'),
        sa.Column('ultimo_numero', sa.Integer(), nullable=False, comment='Último número asignado'),
        sa.PrimaryKeyConstraint('anio'),
    )

    # =========================================================
    # RESPUESTA, MENSAJES E HISTORIAL
    # =========================================================
    op.create_table(
        'respuestas',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('reclamo_id', sa.String(length=36), nullable=False),
        sa.Column('respuesta_empresa', sa.Text(), nullable=False),
        sa.Column('accion_tomada', sa.Text(), nullable=True),
        sa.Column('compensacion_ofrecida', sa.Text(), nullable=True),
        sa.Column('respondido_por', sa.String(length=255), nullable=False),
        sa.Column('fecha_respuesta', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['reclamo_id'], ['reclamos.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('reclamo_id'),
    )

    op.create_table(
        'mensajes_seguimiento',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('reclamo_id', sa.String(length=36), nullable=False),
        sa.Column('tipo_mensaje', sa.String(length=10), nullable=False, comment='CLIENTE / EMPRESA'),
        sa.Column('mensaje', sa.Text(), nullable=False),
        sa.Column('autor', sa.String(length=255), nullable=True),
        sa.Column('fecha_mensaje', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['reclamo_id'], ['reclamos.id'], ondelete='CASCADE'),
        sa.CheckConstraint("tipo_mensaje IN ('CLIENTE', 'EMPRESA')", name='ck_mensajes_tipo'),
    )
    op.create_index('ix_mensajes_seguimiento_reclamo_id', 'mensajes_seguimiento', ['reclamo_id'])

    op.create_table(
        'historial_reclamos',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('reclamo_id', sa.String(length=36), nullable=False),
        sa.Column('estado_anterior', sa.String(length=20), nullable=True),
        sa.Column('estado_nuevo', sa.String(length=20), nullable=False),
        sa.Column('tipo_accion', sa.String(length=30), nullable=False),
        sa.Column('comentario', sa.Text(), nullable=True, comment='Interno, no se expone al consumidor'),
        sa.Column('usuario_accion', sa.String(length=255), nullable=False),
        sa.Column('fecha_accion', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['reclamo_id'], ['reclamos.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_historial_reclamos_reclamo_id', 'historial_reclamos', ['reclamo_id'])

    # =========================================================
    # AUDITORÍA
    # =========================================================
    op.create_table(
        'auditoria_admin',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('usuario_id', sa.String(length=36), nullable=False),
        sa.Column('accion', sa.String(length=50), nullable=False),
        sa.Column('entidad', sa.String(length=50), nullable=False),
        sa.Column('entidad_id', sa.String(length=64), nullable=True),
        sa.Column('detalles', sa.Text(), nullable=True, comment='JSON'),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('fecha', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_auditoria_admin_id', 'auditoria_admin', ['id'])
    op.create_index('ix_auditoria_admin_usuario_id', 'auditoria_admin', ['usuario_id'])
    op.create_index('ix_auditoria_admin_accion', 'auditoria_admin', ['accion'])
    op.create_index('ix_auditoria_admin_entidad_id', 'auditoria_admin', ['entidad_id'])
    op.create_index('ix_auditoria_admin_fecha', 'auditoria_admin', ['fecha'])


def downgrade() -> None:
    op.drop_index('ix_auditoria_admin_fecha', table_name='auditoria_admin')
    op.drop_index('ix_auditoria_admin_entidad_id', table_name='auditoria_admin')
    op.drop_index('ix_auditoria_admin_accion', table_name='auditoria_admin')
    op.drop_index('ix_auditoria_admin_usuario_id', table_name='auditoria_admin')
    op.drop_index('ix_auditoria_admin_id', table_name='auditoria_admin')
    op.drop_table('auditoria_admin')

    op.drop_index('ix_historial_reclamos_reclamo_id', table_name='historial_reclamos')
    op.drop_table('historial_reclamos')

    op.drop_index('ix_mensajes_seguimiento_reclamo_id', table_name='mensajes_seguimiento')
    op.drop_table('mensajes_seguimiento')

    op.drop_table('respuestas')
    op.drop_table('secuencias_reclamo')

    op.drop_index('ix_reclamos_estado', table_name='reclamos')
    op.drop_index('ix_reclamos_fecha_registro', table_name='reclamos')
    op.drop_index('ix_reclamos_numero_documento', table_name='reclamos')
    op.drop_index('ix_reclamos_codigo_reclamo', table_name='reclamos')
    op.drop_table('reclamos')

    op.drop_index('ix_usuarios_admin_email', table_name='usuarios_admin')
    op.drop_table('usuarios_admin')
